import argparse, csv
import logging
from pathlib import Path

import numpy as np

from .config import load_config
from .deterministic import get_reproducibility_info, set_deterministic
from .images import PILImageSource
from .jsonlog import log
from .persistence import load_dictionary, save_dictionary
from .pipeline import Row, fit, transform


def read_rows(path):
    """Read a CSV with an ``image`` column and optional ``label``/``weight`` columns."""
    rows = []
    with open(path, "r", newline="", encoding="utf-8") as fh:
        reader = csv.DictReader(fh)
        if reader.fieldnames is None or "image" not in reader.fieldnames:
            raise ValueError(f"{path}: expected a header with an 'image' column")
        for rec in reader:
            label = rec.get("label") or None
            weight = float(rec["weight"]) if rec.get("weight") else 1.0
            rows.append(Row(rec["image"], label, weight))
    return rows


def _source_for(rows_path):
    return PILImageSource(root=Path(rows_path).resolve().parent)


def _config_for(args):
    return load_config(args.config, seed=getattr(args, "seed", None),
                       n_atoms=getattr(args, "n_atoms", None))


def _write_table(table, out):
    out = Path(out)
    out.parent.mkdir(parents=True, exist_ok=True)
    if out.suffix == ".csv":
        table.to_csv(out)
    else:
        np.savez_compressed(out, features=table.features,
                            labels=np.array(table.labels, dtype=object).astype(str),
                            weights=table.weights)


def cmd_train(args):
    cfg = _config_for(args)
    rows = read_rows(args.rows)
    log("train_start", rows=args.rows, n_images=len(rows), **cfg.model_dump())
    dictionary = fit(rows, cfg, _source_for(args.rows))
    save_dictionary(dictionary, args.out,
                    metadata={"reproducibility": get_reproducibility_info()})
    log("train_done", out=args.out, n_iter=dictionary.history.n_iter,
        converged=dictionary.history.converged, n_features=dictionary.n_features)
    return dictionary


def cmd_extract(args):
    dictionary = load_dictionary(args.dictionary)
    rows = read_rows(args.rows)
    log("extract_start", rows=args.rows, dictionary=args.dictionary, n_images=len(rows))
    table = transform(rows, dictionary, _source_for(args.rows))
    _write_table(table, args.out)
    log("extract_done", out=args.out, shape=list(table.features.shape))
    return table


def cmd_run(args):
    cmd_train(argparse.Namespace(rows=args.rows, out=args.dictionary_out,
                                 config=args.config, seed=args.seed, n_atoms=args.n_atoms))
    return cmd_extract(argparse.Namespace(rows=args.rows, dictionary=args.dictionary_out,
                                          out=args.out))


def main(argv=None):
    ap = argparse.ArgumentParser("spherical-kmeans")
    ap.add_argument("--deterministic", action="store_true",
                    help="Pin BLAS thread pools to one thread")
    ap.add_argument("-v", "--verbose", action="count", default=0)
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_tr = sub.add_parser("train", help="Learn a dictionary from a rows CSV")
    ap_tr.add_argument("--rows", required=True)
    ap_tr.add_argument("--out", default="dictionary")
    ap_tr.add_argument("--config")
    ap_tr.add_argument("--seed", type=int)
    ap_tr.add_argument("--n-atoms", dest="n_atoms", type=int)
    ap_tr.set_defaults(func=cmd_train)

    ap_ex = sub.add_parser("extract", help="Compute features with a saved dictionary")
    ap_ex.add_argument("--rows", required=True)
    ap_ex.add_argument("--dictionary", required=True)
    ap_ex.add_argument("--out", required=True, help="Output .npz or .csv")
    ap_ex.set_defaults(func=cmd_extract)

    ap_run = sub.add_parser("run", help="Train on the rows, then extract their features")
    ap_run.add_argument("--rows", required=True)
    ap_run.add_argument("--dictionary-out", dest="dictionary_out", default="dictionary")
    ap_run.add_argument("--out", required=True)
    ap_run.add_argument("--config")
    ap_run.add_argument("--seed", type=int)
    ap_run.add_argument("--n-atoms", dest="n_atoms", type=int)
    ap_run.set_defaults(func=cmd_run)

    args = ap.parse_args(argv)
    if args.deterministic: set_deterministic()
    logging.basicConfig(level=logging.DEBUG if args.verbose > 1 else
                        logging.INFO if args.verbose else logging.WARNING)
    args.func(args)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
