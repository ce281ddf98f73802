"""
membermap — community member roster rendered as a force-directed map.

Pipeline:
    python -m membermap.parse members.csv -o output/members.json
    python -m membermap.graph output/members.json -o output/ --mode both
    python -m membermap.compile -i output/ -o www/
"""

__version__ = "0.1.0"
