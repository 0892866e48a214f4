"""Post-processing of Graphviz SVG output for panning in a browser."""

from __future__ import annotations

import re

_VIEW_BOX = re.compile(
    r'<svg[\t\n\f\r ]*width="[^"]+"[\t\n\f\r ]*height="[^"]+"[\t\n\f\r ]*viewBox="[^"]+"'
)
_GRAPH_ID = re.compile(r'<g id="graph\d"', re.ASCII)
_SVG_CLOSE = re.compile(r"</svg>")


def massage_svg(svg: str, pan_script: str = "") -> str:
    """Make dot's SVG fill the page and wrap the graph in a pannable viewport.

    The pan_script JavaScript is embedded in front of the graph group.
    """
    # dot sometimes leaves ampersands unquoted, making the SVG unparsable.
    svg = svg.replace("&;", "&amp;;")

    match = _VIEW_BOX.search(svg)
    if match:
        svg = svg[:match.start()] + '<svg width="100%" height="100%"' + svg[match.end():]

    match = _GRAPH_ID.search(svg)
    if match:
        svg = (
            svg[:match.start()]
            + '<script type="text/ecmascript"><![CDATA[' + pan_script + "]]></script>"
            + '<g id="viewport" transform="scale(0.5,0.5) translate(0,0)">'
            + svg[match.start():]
        )

    match = _SVG_CLOSE.search(svg)
    if match:
        svg = svg[:match.start()] + "</g>" + svg[match.start():]

    return svg