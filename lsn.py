#!/usr/bin/env python3
# -*- coding: utf-8 -*-
#
# lsn.py
#
# Version 0.1.0
#
# -----------------------------------------------------------------------------
# A directory listing tool that collapses numbered file runs.
# -----------------------------------------------------------------------------
# Licensed under the GNU General Public License v3.0
#  (https://www.gnu.org/licenses/gpl-3.0.en.html)
#
# This script lists one or more paths (optionally several levels deep) and
# folds files that share a name root and extension but differ only in a
# trailing number into a single line, e.g.
#
#   frame0001.png ... frame0240.png  =>  frame#.png (1..240)
#
# Major Features:
#   - Stem / numeral / extension split of every name.
#   - Grouping with aggregated metadata (latest mtime, summed size, ...).
#   - Sorting by modification time and/or size in the order requested,
#     followed by a lexical pass (stem, range, extension).
#   - Long listing, colored or plain output.
#   - Output destinations: stdout, file, or clipboard.
#
# Usage example:
#   lsn renders/ -lS --depth=2
# -----------------------------------------------------------------------------

__version__ = "0.1.0"

import sys
import os
import re
import glob
import stat
import argparse
import operator
import time
from datetime import datetime
from functools import cmp_to_key

import pyperclip
from rich.console import Console
from rich.text import Text

##############################################################################
# EXTENDED HELP TEXT
##############################################################################

EXTENDED_HELP = {
    "grouping": r"""
Every name is split into <stem><number><extension>, where <number> is the
last run of digits that sits right before the first '.' after it (or the
end of the name):

  test2.3dv             => 'test' + '2' + '.3dv'
  some1other5test2.3dv  => 'some1other5test' + '2' + '.3dv'
  01                    => '' + '01' + ''

Names with the same stem and extension collapse into one line:

  frame1.png frame2.png frame10.png  =>  frame#.png (1..10)

A group with a single member is shown with its number, e.g. img5.jpg.
Leading zeros are not kept in the output (img007.jpg => img7.jpg).

Listing a directory shows what is inside it, not the directory itself;
use --depth=0 to list just the named path.
""",
    "sorting": r"""
-t  sort by modification time (latest member of a group)
-S  sort by size (sum of the group's members)

The keys apply in the order you give them: '-tS' sorts by time, then
size; '-St' by size, then time. After that, names are compared by stem,
number range and extension unless -U is given. -r reverses the result.
With -U and neither -t nor -S, entries appear in the order they were
found on disk.
""",
    "long": r"""
-l prints '<size> <modified> <name>' for each entry:

  size      total bytes of every member of the group
  modified  most recent modification time in the group

If any member's metadata cannot be read, the value is left blank rather
than guessed.
""",
}

def extended_help_lookup(argv):
    """Look for '-h topic' or '--help topic' to print extended help."""
    if "-h" in argv or "--help" in argv:
        idx = argv.index("-h") if "-h" in argv else argv.index("--help")
        if idx + 1 < len(argv):
            topic = argv[idx+1]
            if topic in EXTENDED_HELP:
                print(EXTENDED_HELP[topic])
                sys.exit(0)

##############################################################################
# ARGUMENT PARSING
##############################################################################

def build_sort_keys(requested):
    """
    Turn the flags collected by argparse (in command line order) into the
    list of sort keys. Repeats keep their first position.
    """
    keys = []
    for k in requested or []:
        if k not in keys:
            keys.append(k)
    return keys

def parse_args(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    extended_help_lookup(argv)
    parser = argparse.ArgumentParser(
        prog="lsn",
        description=f"lsn {__version__}: lists directory contents, grouping "
                    "numbered files with common roots together.",
        add_help=False
    )
    parser.add_argument("--version","-V", action="version", version=f"%(prog)s {__version__}")

    parser.add_argument("path", nargs="?", default=".",
                        help="Path or glob pattern to list (default=.).")
    parser.add_argument("--all","-a", action="store_true",
                        help="Include entries whose name starts with '.'.")
    parser.add_argument("--depth", type=int, default=1,
                        help="How many levels to descend (default=1).")
    parser.add_argument("--follow-links","-L", action="store_true",
                        help="Follow symbolic links.")

    parser.add_argument("--unsorted","-U", action="store_true",
                        help="Skip the name/range/extension ordering.")
    parser.add_argument("--sort-by-modified","-t", dest="sort_keys",
                        action="append_const", const="modified",
                        help="Sort by modification time.")
    parser.add_argument("--sort-by-size","-S", dest="sort_keys",
                        action="append_const", const="size",
                        help="Sort by size.")
    parser.add_argument("--reverse","-r", action="store_true",
                        help="Reverse the final order.")

    parser.add_argument("--long","-l", action="store_true",
                        help="Show size and modification time.")
    parser.add_argument("--nocolor","-n", action="store_true",
                        help="Plain output without colors.")

    parser.add_argument("--verbose","-v", action="store_true",
                        help="Extra debug info on stderr.")
    parser.add_argument("--quiet","-q", action="store_true",
                        help="Suppress stdout (still can do file/clip).")

    parser.add_argument("--output","-o", action="append", choices=["stdout","file","clip","all"],
                        help="Where to send output (default=stdout).")
    parser.add_argument("--filename","-f",
                        help="If output includes 'file', specify filename.")

    parser.add_argument("-h","--help", action="help", default=argparse.SUPPRESS,
                        help="Show help or '-h topic' for extended topics like 'grouping' or 'sorting'.")
    args = parser.parse_args(argv)
    args.sort_keys = build_sort_keys(args.sort_keys)
    return args

##############################################################################
# NAME DECOMPOSITION
##############################################################################

# <stem><numeral><extension>; the stem is empty or ends in a non-digit,
# the extension is empty or starts with '.'.
NUMBERED_RE = re.compile(r"(?P<stem>(?:.*\D)?)(?P<num>\d+)(?P<ext>(?:\..*)?)",
                         re.ASCII | re.DOTALL)

# Largest numeral that still groups (unsigned 64 bit).
MAX_NUMERAL = 2**64 - 1

def decompose(name):
    """
    Split a file name into (stem, numeral, extension).

    The numeral is the digit run directly in front of the extension (or the
    end of the name), so 'some1other5test2.3dv' gives
    ('some1other5test', '2', '.3dv'). Returns None when no such run exists.
    The three parts always concatenate back to the original name.
    """
    m = NUMBERED_RE.fullmatch(name)
    if not m:
        return None
    return m.group("stem"), m.group("num"), m.group("ext")

def parse_numeral(text):
    val = int(text)
    if val > MAX_NUMERAL:
        raise ValueError(f"numeral {text} exceeds {MAX_NUMERAL}")
    return val

##############################################################################
# METADATA
##############################################################################

def read_meta(path, follow_links=False):
    """
    Stat 'path' and return its metadata dict, or None if it can't be read.
    'created' is only filled in where the platform reports a birth time.
    """
    try:
        st = os.stat(path) if follow_links else os.lstat(path)
    except OSError:
        return None
    return {
        "modified": st.st_mtime,
        "accessed": st.st_atime,
        "created": getattr(st, "st_birthtime", None),
        "size": st.st_size,
        "is_dir": stat.S_ISDIR(st.st_mode),
        "is_symlink": stat.S_ISLNK(st.st_mode),
    }

def _combine(a, b, fn):
    if a is None or b is None:
        return None
    return fn(a, b)

def merge_meta(meta, other):
    """
    Aggregate two metadata records. A missing value on either side makes
    the merged value missing; is_dir/is_symlink stay with 'meta'.
    """
    if meta is None or other is None:
        return None
    return {
        "modified": _combine(meta["modified"], other["modified"], max),
        "accessed": _combine(meta["accessed"], other["accessed"], max),
        "created": _combine(meta["created"], other["created"], min),
        "size": _combine(meta["size"], other["size"], operator.add),
        "is_dir": meta["is_dir"],
        "is_symlink": meta["is_symlink"],
    }

##############################################################################
# GROUPING LOGIC
##############################################################################

def make_group(stem, ext, rng, parent, meta):
    return {
        "range": rng,
        "parent": parent,
        "stem": stem,
        "ext": ext,
        "meta": meta,
    }

def merge_range(rng, other):
    """Union of two half-open (start, end) ranges."""
    if rng is None:
        return other
    if other is None:
        return rng
    return (min(rng[0], other[0]), max(rng[1], other[1]))

def merge_groups(group, other):
    """
    Fold 'other' into 'group' in place. Only the range and the metadata
    change; parent, stem and extension keep the first member's values.
    """
    group["range"] = merge_range(group["range"], other["range"])
    group["meta"] = merge_meta(group["meta"], other["meta"])
    return group

def fold_entry(groups, name, parent, meta, show_hidden=False, verbose=False):
    """
    Add one entry to 'groups' (a dict keyed by group key, kept in first
    seen order). Returns the group it landed in, or None if it is hidden.
    """
    if not show_hidden and name.startswith("."):
        return None

    parts = decompose(name)
    num = None
    if parts:
        try:
            num = parse_numeral(parts[1])
        except ValueError as e:
            if verbose:
                print(f"[dbg] {name}: {e}; listed ungrouped", file=sys.stderr)

    if num is None:
        # raw names get their own key space so 'a#.txt' never meets ('a', '.txt')
        key = ("name", name)
        stem, ext = os.path.splitext(name)
        incoming = make_group(stem, ext, None, parent, meta)
    else:
        stem, _, ext = parts
        key = ("group", stem, ext)
        incoming = make_group(stem, ext, (num, num+1), parent, meta)

    existing = groups.get(key)
    if existing is None:
        groups[key] = incoming
        return incoming
    return merge_groups(existing, incoming)

def collect_groups(entries, show_hidden=False, verbose=False):
    """
    Fold (name, parent, meta) entries into groups. The result keeps the
    order in which each group was first seen.
    """
    groups = {}
    count = 0
    for name, parent, meta in entries:
        fold_entry(groups, name, parent, meta, show_hidden, verbose)
        count += 1
    if verbose:
        print(f"[dbg] entries={count} groups={len(groups)}", file=sys.stderr)
    return list(groups.values())

def group_field(group, field):
    meta = group["meta"]
    if meta is None:
        return None
    return meta[field]

def group_is_dir(group):
    return bool(group_field(group, "is_dir"))

def group_is_symlink(group):
    return bool(group_field(group, "is_symlink"))

##############################################################################
# ORDERING
##############################################################################

def _cmp(a, b):
    return (a > b) - (a < b)

def range_key(rng):
    # ungrouped entries sort before every numbered range
    if rng is None:
        return (0, 0, 0)
    return (1, rng[0], rng[1])

def compare_groups(a, b, sort_keys=(), lexical=True):
    """
    Three-way comparison of two groups. Metadata keys come first, in the
    order given; a missing value on either side ties on that key. Then,
    if 'lexical' is set: stem (bytes), range, extension (bytes).
    """
    for key in sort_keys:
        av = group_field(a, key)
        bv = group_field(b, key)
        if av is None or bv is None:
            continue
        c = _cmp(av, bv)
        if c:
            return c
    if lexical:
        c = _cmp(os.fsencode(a["stem"]), os.fsencode(b["stem"]))
        if c:
            return c
        c = _cmp(range_key(a["range"]), range_key(b["range"]))
        if c:
            return c
        return _cmp(os.fsencode(a["ext"]), os.fsencode(b["ext"]))
    return 0

def order_groups(groups, sort_keys=(), lexical=True, reverse=False):
    """
    Stable sort of the groups. With no sort keys and lexical ordering off,
    the input order is returned untouched and 'reverse' is ignored.
    """
    groups = list(groups)
    if not sort_keys and not lexical:
        return groups
    key = cmp_to_key(lambda a, b: compare_groups(a, b, sort_keys, lexical))
    return sorted(groups, key=key, reverse=reverse)

##############################################################################
# RENDERING
##############################################################################

def render_name(group):
    """
    'img5.jpg' for a single numbered member, 'frame#.png (1..10)' for a
    run, the plain name for anything ungrouped.
    """
    stem, ext, rng = group["stem"], group["ext"], group["range"]
    if rng is None:
        return f"{stem}{ext}"
    start, end = rng
    if end - start == 1:
        return f"{stem}{start}{ext}"
    return f"{stem}#{ext} ({start}..{end - 1})"

def display_text(text):
    # names that are not valid UTF-8 come back from os with lone surrogates
    return os.fsencode(text).decode("utf-8", "replace")

def render_path(group, depth=1):
    name = render_name(group)
    if depth > 1:
        parent = group["parent"]
        name = os.path.join(os.sep if parent is None else parent, name)
    return display_text(name)

def max_group_size(groups):
    return max((group_field(g, "size") or 0 for g in groups), default=0)

def size_width(max_size):
    return len(str(max_size)) if max_size > 0 else 1

def format_time(ts):
    try:
        dt = datetime.fromtimestamp(ts)
    except (OverflowError, OSError, ValueError):
        return ""
    return f"{dt:%b} {dt.day:>2} {dt:%H:%M}"

def format_line(group, depth=1, long=False, width=1, color=True):
    """Build one output line as rich Text (plain text via .plain)."""
    line = Text()
    if long:
        size = group_field(group, "size")
        modified = group_field(group, "modified")
        size_str = "" if size is None else str(size)
        time_str = "" if modified is None else format_time(modified)
        line.append(f"{size_str:>{width}} {time_str} ")

    path = render_path(group, depth)
    if group_is_dir(group):
        line.append(path, style="blue" if color else None)
        line.append("/")
    elif group_is_symlink(group):
        line.append(path, style="magenta" if color else None)
        line.append("@")
    else:
        line.append(path)
    return line

##############################################################################
# TRAVERSAL
##############################################################################

def expand_roots(pattern, verbose=False):
    # '*' matches dotfiles too; hidden entries are filtered per entry later
    roots = sorted(glob.glob(pattern, include_hidden=True))
    if not roots and verbose:
        print(f"[dbg] no match for {pattern}", file=sys.stderr)
    return roots

def walk_entries(root, depth=1, follow_links=False, verbose=False):
    """
    Yield (name, parent, meta) for everything below 'root', at most 'depth'
    levels down. A file root (or depth 0) yields the root itself.
    """
    if depth < 1 or not os.path.isdir(root):
        name = os.path.basename(os.path.normpath(root))
        meta = read_meta(root, follow_links)
        if meta is None and verbose:
            print(f"[dbg] cannot stat {root}", file=sys.stderr)
        yield name, os.path.dirname(root), meta
        return

    def on_error(err):
        if verbose:
            print(f"[dbg] cannot read {err.filename}: {err.strerror}", file=sys.stderr)

    for dirpath, subdirs, files in os.walk(root, onerror=on_error, followlinks=follow_links):
        rel = os.path.relpath(dirpath, root)
        level = 1 if rel == os.curdir else rel.count(os.sep) + 2
        for name in subdirs + files:
            fp = os.path.join(dirpath, name)
            meta = read_meta(fp, follow_links)
            if meta is None and verbose:
                print(f"[dbg] cannot stat {fp}", file=sys.stderr)
            yield name, dirpath, meta
        if level >= depth:
            subdirs[:] = []

def iter_entries(pattern, depth=1, follow_links=False, verbose=False):
    for root in expand_roots(pattern, verbose):
        yield from walk_entries(root, depth, follow_links, verbose)

##############################################################################
# OUTPUT
##############################################################################

def default_filename():
    tzname = time.tzname[time.localtime().tm_isdst]
    return datetime.now().strftime(f"lsn_%y.%m.%d_%H-%M_{tzname}.txt")

def emit_output(lines, args):
    outs = set(args.output) if args.output else {"stdout"}
    if "all" in outs:
        outs = {"stdout", "file", "clip"}

    plain = "\n".join(line.plain for line in lines)

    if "file" in outs:
        out_file = args.filename if args.filename else default_filename()
        try:
            with open(out_file,"w",encoding="utf-8") as f:
                f.write(plain + "\n" if plain else "")
        except OSError as e:
            print(f"[lsn] Could not write {out_file}: {e}", file=sys.stderr)
        else:
            print(f"[lsn] Wrote output to file: {out_file}", file=sys.stderr)

    if "clip" in outs:
        try:
            pyperclip.copy(plain)
        except pyperclip.PyperclipException as e:
            print(f"[lsn] Could not copy to clipboard: {e}", file=sys.stderr)
        else:
            print("[lsn] Copied output to clipboard.", file=sys.stderr)

    if not args.quiet and "stdout" in outs:
        console = Console(no_color=args.nocolor, highlight=False)
        for line in lines:
            console.print(line, soft_wrap=True)

##############################################################################
# MAIN
##############################################################################

def main(argv=None):
    args = parse_args(argv)

    # 1) gather
    entries = iter_entries(args.path, args.depth, args.follow_links, args.verbose)
    groups = collect_groups(entries, show_hidden=args.all, verbose=args.verbose)

    # 2) order
    groups = order_groups(groups, args.sort_keys,
                          lexical=not args.unsorted, reverse=args.reverse)

    # 3) format
    width = size_width(max_group_size(groups))
    lines = [format_line(g, depth=args.depth, long=args.long, width=width,
                         color=not args.nocolor)
             for g in groups]

    # 4) output
    emit_output(lines, args)

if __name__ == "__main__":
    main()
