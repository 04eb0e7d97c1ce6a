#!/usr/bin/env python
import sys
import argparse
import logging

from tqdm import tqdm

from .logger import DenmatLogger
from .utils import DatasetError, load_dataset
from .utils.file_operations import save_json_atomically

logger = logging.getLogger("denmat")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="denmat", description="Annotate traffic videos with DENM incident records"
    )
    parser.add_argument("dataset", nargs="?", help="dataset JSON file to open")
    parser.add_argument(
        "--videos",
        nargs="+",
        default=[],
        metavar="PATH",
        help="video files or folders to match against dataset items",
    )
    parser.add_argument(
        "--normalize",
        metavar="OUTPUT",
        help="write the dataset with every record normalized to OUTPUT and exit",
    )
    return parser.parse_args(argv)


def normalize_dataset(dataset, output):
    """Headless pass: load, normalize every record and write the export form"""
    items = load_dataset(dataset)
    exported = []
    unannotated = 0
    for item in tqdm(items, desc="Normalizing", unit="item"):
        if not item.has_annotation:
            unannotated += 1
        exported.append(item.to_export_dict())

    if not save_json_atomically(output, exported):
        return 1
    logger.info(f"Wrote {len(exported)} items to {output} ({unannotated} without annotation)")
    return 0


def main(argv=None):
    args = parse_args(argv)
    DenmatLogger()

    if args.normalize:
        if not args.dataset:
            logger.error("--normalize needs a dataset file")
            return 2
        try:
            return normalize_dataset(args.dataset, args.normalize)
        except DatasetError as e:
            logger.error(str(e))
            return 1

    from PyQt5.QtWidgets import QApplication
    from .main import DenmAnnotationTool

    app = QApplication(sys.argv)
    window = DenmAnnotationTool()
    window.show()
    if args.videos:
        window.add_videos(args.videos)
    if args.dataset:
        window.open_dataset(args.dataset)
    elif not args.videos:
        window.restore_last_state()
    return app.exec_()


if __name__ == "__main__":
    sys.exit(main())
