"""Command line entry point for the S3 file system adapter."""
from __future__ import annotations

import argparse
import logging
import sys

from .config import ConfStorage
from .errors import FileSystemError
from .filesystem import S3FileSystem
from .utils import format_size, format_throughput


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="s3_filesystem", description="File operations on an S3 bucket.")
    parser.add_argument("--conf", required=True, help="identifier of a saved configuration")
    parser.add_argument("--conf-file", default=None, help="configuration file (default ~/.s3_filesystem.json)")
    parser.add_argument("-v", "--verbose", action="store_true")
    commands = parser.add_subparsers(dest="command", required=True)

    ls = commands.add_parser("ls", help="list files below a path")
    ls.add_argument("path")
    put = commands.add_parser("put", help="upload local files")
    put.add_argument("local", nargs="+")
    put.add_argument("dest")
    get = commands.add_parser("get", help="download a file")
    get.add_argument("path")
    get.add_argument("local")
    rm = commands.add_parser("rm", help="delete files")
    rm.add_argument("paths", nargs="+")
    rmdir = commands.add_parser("rmdir", help="delete everything below a path")
    rmdir.add_argument("path")
    stat = commands.add_parser("stat", help="show object metadata")
    stat.add_argument("path")
    return parser


def run(args: argparse.Namespace, fs: S3FileSystem) -> None:
    if args.command == "ls":
        for name in fs.list(args.path):
            print(name)
    elif args.command == "put":
        if len(args.local) == 1:
            results = [fs.upload(args.local[0], args.dest)]
        else:
            dest = args.dest.rstrip("/")
            names = [local.rstrip("/").rsplit("/", 1)[-1] for local in args.local]
            results = fs.batch_upload(args.local, [f"{dest}/{name}" for name in names])
        for result in results:
            print(f"{result.key}\t{format_size(result.size)}\t{format_throughput(result.throughput)}")
    elif args.command == "get":
        result = fs.download(args.path, args.local)
        print(f"{args.local}\t{format_size(result.size)}")
    elif args.command == "rm":
        if len(args.paths) == 1:
            fs.delete_file(args.paths[0])
        else:
            fs.batch_delete(args.paths)
    elif args.command == "rmdir":
        fs.delete_directory(args.path)
    elif args.command == "stat":
        details = fs.get_object_details(args.path)
        print(f"key:           {details.key}")
        print(f"size:          {format_size(details.size)} ({details.size} bytes)")
        print(f"last modified: {details.last_modified or '-'}")
        print(f"etag:          {details.etag or '-'}")
        print(f"content type:  {details.content_type or '-'}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        conf = ConfStorage(args.conf_file).get(args.conf)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    fs = S3FileSystem(conf)
    try:
        fs.connect()
        run(args, fs)
    except FileSystemError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    finally:
        fs.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
