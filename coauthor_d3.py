"""
data.json -> interactive D3 force graph of co-authorship / affiliation data.

- Reads {"nodes": [{"id", "country"}], "links": [{"source", "target"}]}.
  The "country" field carries the raw affiliation string; the country is
  extracted from it by substring matching.
- Node radius: sqrt scale of the co-authorship degree, [3, 12].
- Node colour: Tableau10 for the ten most frequent countries, grey otherwise.
- Writes one self-contained .html with a d3-force simulation, hover / click /
  drag interactions and sliders for charge, collision and link strength.
"""

import argparse
import html
import json
import logging
import math
import sys
from collections import Counter
from dataclasses import dataclass, field

import networkx as nx

logger = logging.getLogger(__name__)

# ========================
# CONFIGURATION
# ========================
DATA_FILE = "data.json"
OUT_HTML  = "coauthor_graph.html"
TITLE     = "Co-authorship network"

WIDTH  = 960
HEIGHT = 600

RADIUS_RANGE  = (3.0, 12.0)
TOP_COUNTRIES = 10
SEED          = 42

COUNTRIES = [
    "China", "Spain", "France", "Germany", "USA", "United Kingdom", "UK",
    "Japan", "Canada", "Italy", "Australia", "Switzerland", "Netherlands",
    "Sweden", "India", "Brazil",
]
UNKNOWN_COUNTRY = "Unknown"

# d3.schemeTableau10
PALETTE = [
    "#4e79a7", "#f28e2c", "#e15759", "#76b7b2", "#59a14f",
    "#edc949", "#af7aa1", "#ff9da7", "#9c755f", "#bab0ab",
]
COLOR_OTHER = "#A9A9A9"
COLOR_LINK  = "#aaa"

D3_URL = "https://cdnjs.cloudflare.com/ajax/libs/d3/7.9.0/d3.min.js"


class GraphDataError(ValueError):
    """Raised when the input data cannot be turned into a graph."""


@dataclass
class Slider:
    id: str
    label: str
    min: float
    max: float
    step: float
    value: float

    def validate(self):
        if self.min > self.max:
            raise ValueError(f"{self.id}: min {self.min} is above max {self.max}")
        if not self.min <= self.value <= self.max:
            raise ValueError(f"{self.id}: {self.value} outside [{self.min}, {self.max}]")


def default_sliders():
    return {
        "chargeStrength":  Slider("chargeStrength", "Charge strength", -300, 0, 1, -30),
        "collisionRadius": Slider("collisionRadius", "Collision radius", 0, 20, 1, 2),
        "linkStrength":    Slider("linkStrength", "Link strength", 0, 1, 0.05, 0.5),
    }


@dataclass
class Settings:
    data_file: str = DATA_FILE
    out_html: str = OUT_HTML
    title: str = TITLE
    width: int = WIDTH
    height: int = HEIGHT
    radius_range: tuple = RADIUS_RANGE
    top_n: int = TOP_COUNTRIES
    countries: list = field(default_factory=lambda: list(COUNTRIES))
    sliders: dict = field(default_factory=default_sliders)
    seed_layout: bool = False
    seed: int = SEED


# ========================
# HELPERS
# ========================
def extract_country(affiliation, countries=COUNTRIES):
    if not affiliation: return UNKNOWN_COUNTRY
    for country in countries:
        if country in affiliation:
            return country
    return UNKNOWN_COUNTRY

def clamp(value, radius, extent):
    """Keep a circle of ``radius`` centred at ``value`` inside ``[0, extent]``."""
    return max(radius, min(extent - radius, value))

def _escape_script_value(value):
    # JSON placed inside <script> must not open or close tags, or start an HTML comment
    return (
        value.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


# ========================
# READ DATA & BUILD GRAPH
# ========================
def load_data(path):
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise GraphDataError(f"cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise GraphDataError(f"{path} is not valid JSON: {e}") from e

def build_graph(data, countries=COUNTRIES):
    """Build a MultiGraph from node-link data.

    Each node keeps its raw affiliation string and the country extracted from
    it. Links are kept as parallel edges so that repeated co-authorships
    count toward degree.
    """
    if not isinstance(data, dict):
        raise GraphDataError("top-level JSON value must be an object")
    raw_nodes, raw_links = data.get("nodes"), data.get("links")
    if not isinstance(raw_nodes, list) or not isinstance(raw_links, list):
        raise GraphDataError("data must contain 'nodes' and 'links' arrays")

    G = nx.MultiGraph()
    for i, n in enumerate(raw_nodes):
        if not isinstance(n, dict) or n.get("id") is None:
            raise GraphDataError(f"node #{i} has no id")
        nid = str(n["id"])
        if nid in G:
            raise GraphDataError(f"duplicate node id: {nid}")
        affiliation = "" if n.get("country") is None else str(n["country"])
        G.add_node(nid, affiliation=affiliation, country=extract_country(affiliation, countries))

    for i, link in enumerate(raw_links):
        if not isinstance(link, dict):
            raise GraphDataError(f"link #{i} is not an object")
        ends = link.get("source"), link.get("target")
        for end in ends:
            if end is None or str(end) not in G:
                raise GraphDataError(f"link #{i} references unknown node: {end!r}")
        G.add_edge(str(ends[0]), str(ends[1]))

    logger.debug("graph built: %d nodes, %d links", G.number_of_nodes(), G.number_of_edges())
    return G


# ========================
# VISUAL STATE
# ========================
def degree_domain(G):
    degrees = [d for _, d in G.degree() if d > 0]
    if not degrees: return None
    return min(degrees), max(degrees)

def node_radius(degree, domain, radius_range=RADIUS_RANGE):
    """Square-root scale from the degree domain onto ``radius_range``.

    Isolated nodes are sized as degree 1. A missing or single-valued domain
    maps to the middle of the range.
    """
    r0, r1 = radius_range
    if domain is None or domain[0] == domain[1]:
        return (r0 + r1) / 2
    d0, d1 = math.sqrt(domain[0]), math.sqrt(domain[1])
    t = (math.sqrt(max(degree, 1)) - d0) / (d1 - d0)
    t = 0.0 if t < 0 else (1.0 if t > 1 else t)
    return r0 + t * (r1 - r0)

def top_countries(G, n=TOP_COUNTRIES):
    # Counter keeps first-seen order, so ties go to the earlier country
    counts = Counter(country for _, country in G.nodes(data="country"))
    return [country for country, _ in counts.most_common(n)]

def country_colors(countries, palette=PALETTE):
    if len(countries) > len(palette):
        logger.warning("%d top countries but only %d colours; extra countries fall back to grey",
                       len(countries), len(palette))
    return dict(zip(countries, palette))

def seed_positions(G, radii, width, height, seed=SEED):
    """Starting positions from spring_layout, scaled to the canvas and clamped."""
    if G.number_of_nodes() == 0: return {}
    pos = nx.spring_layout(nx.Graph(G), seed=seed)
    out = {}
    for nid, (x, y) in pos.items():
        r = radii[nid]
        out[nid] = (
            clamp(float(x + 1) / 2 * width, r, width),
            clamp(float(1 - y) / 2 * height, r, height),
        )
    return out

def tooltip_html(nid, affiliation):
    return f"<strong>{html.escape(nid)}</strong><br>Affiliation: {html.escape(affiliation)}"

def build_visual_state(G, settings):
    domain = degree_domain(G)
    top = top_countries(G, settings.top_n)
    colors = country_colors(top)

    nodes = []
    radii = {}
    for nid, attrs in G.nodes(data=True):
        degree = G.degree(nid)
        radius = node_radius(degree, domain, settings.radius_range)
        radii[nid] = radius
        nodes.append({
            "id": nid,
            "affiliation": attrs["affiliation"],
            "country": attrs["country"],
            "degree": degree,
            "radius": radius,
            "color": colors.get(attrs["country"], COLOR_OTHER),
            "tooltip": tooltip_html(nid, attrs["affiliation"]),
        })

    if settings.seed_layout:
        pos = seed_positions(G, radii, settings.width, settings.height, settings.seed)
        for n in nodes:
            n["x"], n["y"] = pos[n["id"]]

    links = [{"source": u, "target": v} for u, v in G.edges()]
    return nodes, links, [(c, colors.get(c, COLOR_OTHER)) for c in top]


# ========================
# GENERATE HTML
# ========================
def _slider_html(s):
    sid = html.escape(s.id)
    return (
        f'<label for="{sid}">{html.escape(s.label)} <span class="val" id="{sid}-val">{s.value:g}</span></label>\n'
        f'    <input type="range" id="{sid}" min="{s.min:g}" max="{s.max:g}" step="{s.step:g}" value="{s.value:g}">'
    )

def _legend_html(legend):
    items = [
        f'<li><span class="swatch" style="background:{color}"></span>{html.escape(country)}</li>'
        for country, color in legend
    ]
    items.append(f'<li><span class="swatch" style="background:{COLOR_OTHER}"></span>Other</li>')
    return "\n      ".join(items)

def render_html(nodes, links, legend, settings):
    payload = _escape_script_value(
        json.dumps({"nodes": nodes, "links": links}, ensure_ascii=False)
    )
    sliders = "\n    ".join(_slider_html(s) for s in settings.sliders.values())
    title = html.escape(settings.title)
    width, height = settings.width, settings.height

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>{title}</title>
<style>
  body {{ margin: 0; font-family: 'Segoe UI', sans-serif; background: #fafafa; }}
  #visualization {{ width: {width}px; height: {height}px; margin: 16px; border: 1px solid #ddd; background: #fff; }}
  #visualization circle {{ stroke: #fff; stroke-width: 1px; cursor: pointer; }}

  #tooltip {{
    position: absolute; opacity: 0; pointer-events: none;
    background: rgba(255,255,255,0.95); border: 1px solid #ccc; border-radius: 4px;
    padding: 6px 10px; font-size: 12px; line-height: 1.4; max-width: 260px;
  }}

  #controls {{
    position: fixed; top: 16px; right: 16px; width: 240px;
    background: rgba(255,255,255,0.95); border: 1px solid #ddd; border-radius: 8px;
    padding: 12px 14px; display: flex; flex-direction: column; gap: 6px; font-size: 12px;
  }}
  #controls h3 {{ margin: 0 0 4px; font-size: 14px; }}
  #controls .stats {{ color: #666; margin-bottom: 6px; }}
  #controls .val {{ float: right; color: #444; font-weight: 600; }}
  #legend {{ list-style: none; margin: 8px 0 0; padding: 0; }}
  #legend li {{ display: flex; align-items: center; gap: 6px; margin: 2px 0; }}
  .swatch {{ display: inline-block; width: 10px; height: 10px; border-radius: 50%; }}
</style>
</head>
<body>

<div id="visualization"></div>
<div id="tooltip"></div>

<div id="controls">
  <h3>{title}</h3>
  <div class="stats">{len(nodes)} authors &middot; {len(links)} links</div>
    {sliders}
  <ul id="legend">
      {_legend_html(legend)}
  </ul>
</div>

<script src="{D3_URL}"></script>
<script>
const graphData = {payload};
const width = {width}, height = {height};
const nodes = graphData.nodes;
const links = graphData.links;

const svg = d3.select("#visualization")
  .append("svg")
  .attr("width", width)
  .attr("height", height);
const tooltip = d3.select("#tooltip");

// ── Forces ──
let chargeStrength  = +document.getElementById("chargeStrength").value;
let collisionRadius = +document.getElementById("collisionRadius").value;
let linkStrength    = +document.getElementById("linkStrength").value;

const simulation = d3.forceSimulation(nodes)
  .force("link", d3.forceLink(links).id(d => d.id).strength(linkStrength))
  .force("charge", d3.forceManyBody().strength(chargeStrength))
  .force("center", d3.forceCenter(width / 2, height / 2))
  .force("collision", d3.forceCollide().radius(d => d.radius + collisionRadius));

// ── Draw ──
const linkElements = svg.append("g")
  .attr("class", "links")
  .selectAll("line").data(links).join("line")
  .attr("stroke", "{COLOR_LINK}");

const nodeElements = svg.append("g")
  .attr("class", "nodes")
  .selectAll("circle").data(nodes).join("circle")
  .attr("r", d => d.radius)
  .attr("fill", d => d.color)
  .on("mouseover", handleMouseOver)
  .on("mouseout", handleMouseOut)
  .on("click", handleClick)
  .call(drag(simulation));

// ── Tick: keep every node inside the canvas ──
simulation.on("tick", () => {{
  nodeElements
    .attr("cx", d => d.x = Math.max(d.radius, Math.min(width - d.radius, d.x)))
    .attr("cy", d => d.y = Math.max(d.radius, Math.min(height - d.radius, d.y)));
  linkElements
    .attr("x1", d => d.source.x)
    .attr("y1", d => d.source.y)
    .attr("x2", d => d.target.x)
    .attr("y2", d => d.target.y);
}});

// ── Drag ──
function drag(simulation) {{
  function dragstarted(event, d) {{
    if (!event.active) simulation.alphaTarget(0.3).restart();
    d.fx = d.x;
    d.fy = d.y;
  }}
  function dragged(event, d) {{
    d.fx = event.x;
    d.fy = event.y;
  }}
  function dragended(event, d) {{
    if (!event.active) simulation.alphaTarget(0);
    d.fx = null;
    d.fy = null;
  }}
  return d3.drag()
    .on("start", dragstarted)
    .on("drag", dragged)
    .on("end", dragended);
}}

// ── Hover / click ──
function handleMouseOver(event, d) {{
  nodeElements.style("opacity", n => n.affiliation === d.affiliation ? 1 : 0.2);
  linkElements.style("opacity", 0.2);
}}
function handleMouseOut() {{
  nodeElements.style("opacity", 1);
  linkElements.style("opacity", 1);
}}
function handleClick(event, d) {{
  tooltip.style("opacity", 1)
    .html(d.tooltip)
    .style("left", (event.pageX + 5) + "px")
    .style("top", (event.pageY - 28) + "px");
}}
svg.on("click", event => {{
  if (event.target.tagName !== "circle") tooltip.style("opacity", 0);
}});

// ── Sliders ──
function onSlider(id, apply) {{
  d3.select("#" + id).on("input", function() {{
    const value = +this.value;
    document.getElementById(id + "-val").textContent = value;
    apply(value);
    simulation.alpha(1).restart();
  }});
}}
onSlider("chargeStrength", v => {{
  chargeStrength = v;
  simulation.force("charge").strength(chargeStrength);
}});
onSlider("collisionRadius", v => {{
  collisionRadius = v;
  simulation.force("collision").radius(d => d.radius + collisionRadius);
}});
onSlider("linkStrength", v => {{
  linkStrength = v;
  simulation.force("link").strength(linkStrength);
}});
</script>
</body>
</html>
"""


def generate(settings):
    G = build_graph(load_data(settings.data_file), settings.countries)
    nodes, links, legend = build_visual_state(G, settings)
    page = render_html(nodes, links, legend, settings)

    try:
        with open(settings.out_html, "w", encoding="utf-8") as f:
            f.write(page)
    except OSError as e:
        raise GraphDataError(f"cannot write {settings.out_html}: {e}") from e

    logger.info("%d nodes, %d links -> %s", len(nodes), len(links), settings.out_html)
    logger.info("top countries: %s", ", ".join(c for c, _ in legend) or "none")
    return settings.out_html


# ========================
# CLI
# ========================
def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="data.json -> interactive D3 co-authorship force graph")
    ap.add_argument("data_file", nargs="?", default=DATA_FILE, help="node-link JSON input")
    ap.add_argument("-o", "--output", default=OUT_HTML, help="HTML file to write")
    ap.add_argument("--title", default=TITLE)
    ap.add_argument("--width", type=int, default=WIDTH)
    ap.add_argument("--height", type=int, default=HEIGHT)
    ap.add_argument("--top", type=int, default=TOP_COUNTRIES, help="number of coloured countries")
    ap.add_argument("--country", action="append", default=[],
                    help="extra country name to match in affiliations (repeatable)")
    ap.add_argument("--charge", type=float, help="initial charge strength")
    ap.add_argument("--collision", type=float, help="initial collision radius")
    ap.add_argument("--link-strength", type=float, help="initial link strength")
    ap.add_argument("--seed-layout", action="store_true",
                    help="start the simulation from a spring_layout arrangement")
    ap.add_argument("--seed", type=int, default=SEED)
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args(argv)

    if args.width <= 0 or args.height <= 0:
        ap.error("--width and --height must be positive")
    if args.top < 0:
        ap.error("--top must not be negative")
    return args

def settings_from_args(args):
    sliders = default_sliders()
    for key, value in (("chargeStrength", args.charge),
                       ("collisionRadius", args.collision),
                       ("linkStrength", args.link_strength)):
        if value is not None:
            sliders[key].value = value
    for s in sliders.values():
        s.validate()

    return Settings(
        data_file=args.data_file,
        out_html=args.output,
        title=args.title,
        width=args.width,
        height=args.height,
        top_n=args.top,
        countries=COUNTRIES + [c for c in args.country if c not in COUNTRIES],
        sliders=sliders,
        seed_layout=args.seed_layout,
        seed=args.seed,
    )

def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        generate(settings_from_args(args))
    except ValueError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
