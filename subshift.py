#!/usr/bin/env python3
"""
Subtitle Time Shifter
Adds or subtracts a millisecond offset to every timestamp in an .srt file.
The shifted file replaces the original, which is backed up to <file>.orig
"""

import argparse
import errno
import logging
import os
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from srt_time import ParseError, SRTFormatter

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

SEPARATOR = " --> "
TEMP_SUFFIX = ".tmp"
BACKUP_SUFFIX = ".orig"


class ProcessError(Exception):
    """A timing line could not be transformed"""

    def __init__(self, line: str, reason: str, parse_error: Optional[ParseError] = None):
        self.line = line
        self.reason = reason
        self.parse_error = parse_error
        self.line_number: Optional[int] = None
        self.path: Optional[str] = None
        super().__init__(line, reason)

    def __str__(self):
        where = "line"
        if self.line_number is not None:
            where += f" {self.line_number}"
        if self.path is not None:
            where += f" of {self.path}"
        return f"Failed to process the {where} `{self.line}`: {self.reason}"


class IoErrorKind(Enum):
    SOURCE_UNREADABLE = "SOURCE_UNREADABLE"
    TEMP_UNWRITABLE = "TEMP_UNWRITABLE"
    STREAM_FAILURE = "STREAM_FAILURE"
    BACKUP_FAILED = "BACKUP_FAILED"
    PROMOTE_FAILED = "PROMOTE_FAILED"


_STAGE_MESSAGES = {
    IoErrorKind.SOURCE_UNREADABLE: "Failed to read the input file",
    IoErrorKind.TEMP_UNWRITABLE: "Failed to create the output file",
    IoErrorKind.STREAM_FAILURE: "Failed while streaming the file",
    IoErrorKind.BACKUP_FAILED: "Failed while taking a backup of the input file",
    IoErrorKind.PROMOTE_FAILED: "Failed while trying to replace the original file with the updated version",
}


class IoError(Exception):
    """A file-system stage of the run failed"""

    def __init__(self, kind: IoErrorKind, path: str, cause: Exception, backup_path: Optional[str] = None):
        self.kind = kind
        self.path = path
        self.cause = cause
        self.backup_path = backup_path
        super().__init__(kind, path, cause)

    def __str__(self):
        message = f"{_STAGE_MESSAGES[self.kind]}: {self.path}: {self.cause}"
        if self.kind is IoErrorKind.PROMOTE_FAILED:
            message += (f". The original content is preserved in {self.backup_path}"
                        f" and {self.path} is missing; rename the backup to restore it")
        return message


@dataclass
class ShiftResult:
    path: str
    backup_path: str
    lines_total: int = 0
    timing_lines: int = 0


def temp_path_for(path: str) -> str:
    return path + TEMP_SUFFIX


def backup_path_for(path: str) -> str:
    return path + BACKUP_SUFFIX


def is_timing_line(line: str) -> bool:
    """Check whether a line carries a start/end timestamp pair"""
    return SEPARATOR in line


# The timestamp is the run of non-whitespace touching the separator
def _split_last_token(text: str):
    index = len(text)
    while index > 0 and not text[index - 1].isspace():
        index -= 1
    return text[:index], text[index:]


def _split_first_token(text: str):
    index = 0
    while index < len(text) and not text[index].isspace():
        index += 1
    return text[:index], text[index:]


def process_timing_line(line: str, offset_ms: int) -> str:
    """Shift both timestamps of a timing line, keeping any surrounding text"""
    parts = line.split(SEPARATOR)
    if len(parts) != 2:
        raise ProcessError(line, f"expected exactly two timestamps, found {len(parts)} separated parts")

    head, start = _split_last_token(parts[0])
    end, tail = _split_first_token(parts[1])

    try:
        shifted = [
            SRTFormatter.format_time(SRTFormatter.apply_offset(SRTFormatter.parse_time(stamp), offset_ms))
            for stamp in (start, end)
        ]
    except ParseError as e:
        raise ProcessError(line, str(e), parse_error=e) from e

    return f"{head}{shifted[0]}{SEPARATOR}{shifted[1]}{tail}"


def _strip_line_ending(line: str) -> str:
    if line.endswith('\n'):
        line = line[:-1]
        if line.endswith('\r'):
            line = line[:-1]
    return line


def process_file(path, offset_ms: int) -> ShiftResult:
    """
    Shift every timing line of a subtitle file in place.

    The shifted content is written to <path>.tmp first. Only when the whole
    source has been processed is the original renamed to <path>.orig and the
    temporary file renamed to <path>, in that order.
    """
    source_path = os.fspath(path)
    temp_path = temp_path_for(source_path)
    backup_path = backup_path_for(source_path)
    result = ShiftResult(path=source_path, backup_path=backup_path)

    logger.info(f"Shifting timestamps in {source_path} by {offset_ms:+d}ms")

    try:
        source = open(source_path, 'r', encoding='utf-8', newline='\n')
    except OSError as e:
        raise IoError(IoErrorKind.SOURCE_UNREADABLE, source_path, e) from e

    with source:
        try:
            output = open(temp_path, 'w', encoding='utf-8', newline='\n')
        except OSError as e:
            raise IoError(IoErrorKind.TEMP_UNWRITABLE, temp_path, e) from e

        try:
            with output:
                for raw_line in source:
                    result.lines_total += 1
                    line = _strip_line_ending(raw_line)
                    if is_timing_line(line):
                        try:
                            shifted = process_timing_line(line, offset_ms)
                        except ProcessError as e:
                            e.line_number = result.lines_total
                            e.path = source_path
                            raise
                        logger.debug(f"{line} => {shifted}")
                        line = shifted
                        result.timing_lines += 1
                    output.write(line + '\n')
                output.flush()
                os.fsync(output.fileno())
        except (OSError, UnicodeDecodeError) as e:
            raise IoError(IoErrorKind.STREAM_FAILURE, source_path, e) from e

    # os.rename silently replaces an existing target on POSIX
    if os.path.lexists(backup_path):
        raise IoError(IoErrorKind.BACKUP_FAILED, backup_path,
                      FileExistsError(errno.EEXIST, "Backup file already exists", backup_path))
    try:
        os.rename(source_path, backup_path)
    except OSError as e:
        raise IoError(IoErrorKind.BACKUP_FAILED, source_path, e) from e
    logger.info(f"Original file backed up to {backup_path}")

    try:
        os.replace(temp_path, source_path)
    except OSError as e:
        raise IoError(IoErrorKind.PROMOTE_FAILED, source_path, e, backup_path=backup_path) from e

    logger.info(f"Shifted {result.timing_lines} timing lines out of {result.lines_total} lines")
    return result


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description='A tool to add or subtract offsets to the timestamps in a .srt subtitle file. '
                    'After offsets are applied the original file will be backed up to <file>.orig')

    parser.add_argument('--file', '-f', required=True, help='The path to the subtitle file')
    parser.add_argument('--offset', '-o', type=int, required=True,
                        help='The shift offset in milliseconds. To increment by half a second provide +500, '
                             'to decrement -500.')
    parser.add_argument('--verbose', '-v', action='store_true', help='Log every shifted timing line')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    try:
        result = process_file(args.file, args.offset)
    except (ProcessError, IoError) as e:
        logger.error(f"Error: {e}")
        return 1

    logger.info(f"Output saved to: {result.path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
