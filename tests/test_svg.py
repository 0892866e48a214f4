from profkit.svg import massage_svg

SAMPLE = (
    '<svg width="100pt" height="200pt"\n'
    ' viewBox="0.00 0.00 100.00 200.00">\n'
    '<g id="graph0" class="graph" transform="scale(1 1)">\n'
    "<text>a&;b</text>\n"
    "</g>\n"
    "</svg>\n"
)

PAN = "function pan() {}"


def test_viewbox_replaced_by_full_size():
    out = massage_svg(SAMPLE, PAN)
    assert out.startswith('<svg width="100%" height="100%"')
    assert "viewBox" not in out


def test_script_and_viewport_inserted_before_graph():
    out = massage_svg(SAMPLE, PAN)
    script = '<script type="text/ecmascript"><![CDATA[' + PAN + "]]></script>"
    viewport = '<g id="viewport" transform="scale(0.5,0.5) translate(0,0)">'
    assert out.index(script) < out.index(viewport) < out.index('<g id="graph0"')
    assert out.index(script + viewport) >= 0


def test_viewport_group_is_closed():
    out = massage_svg(SAMPLE, PAN)
    assert out.count("<g ") == out.count("</g>")
    assert out.rstrip().endswith("</g></svg>")


def test_unquoted_ampersand_fixed():
    out = massage_svg(SAMPLE, PAN)
    assert "&amp;;" in out
    assert "a&;b" not in out


def test_text_without_markers_is_unchanged():
    assert massage_svg("plain text", PAN) == "plain text"


def test_default_script_is_empty():
    out = massage_svg(SAMPLE)
    assert "<![CDATA[]]>" in out


def test_body_preserved():
    out = massage_svg(SAMPLE, PAN)
    assert 'class="graph" transform="scale(1 1)"' in out