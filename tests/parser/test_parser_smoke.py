from stepwise import parser


def test_parser_smoke():
    assert hasattr(parser, "parse_source")
    src = "workflow W v1 { step S { go() } }"
    result = parser.parse_source(src)
    assert result is not None
    assert result.steps[0].name == "S"
