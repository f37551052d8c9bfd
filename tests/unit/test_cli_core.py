from kinoreview.cli import parse_args


def test_parse_args_defaults():
    args = parse_args(["import-ratings", "12345"])
    assert args.command == "import-ratings"
    assert args.target == "12345"
    assert args.overlay_config_dir is None
    assert args.workers is None
    assert args.log_level == "INFO"


def test_parse_args_accepts_author_and_overlay():
    args = parse_args(
        ["import-ratings", "12345", "--author-id", "u-1", "--author-name", "Ann", "--overlay-config-dir", "config/live"]
    )
    assert args.author_id == "u-1"
    assert args.author_name == "Ann"
    assert args.overlay_config_dir == "config/live"
