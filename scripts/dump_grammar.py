from __future__ import annotations

import argparse

from protosql.lalr import build_lalr_table
from protosql.proto_grammar import build_proto_grammar


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(prog="dump_grammar")
    ap.add_argument("--table", action="store_true", help="Also build the LALR table and report its size")
    args = ap.parse_args(argv)

    g = build_proto_grammar()
    print(f"productions: {len(g.productions)}")
    print(g.describe())
    if args.table:
        table = build_lalr_table(g)
        print(f"states: {len(table.action)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
