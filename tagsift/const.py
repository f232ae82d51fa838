# tagsift
#
# Copyright (C) 2025 Genome Research Ltd.
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

from enum import IntEnum, StrEnum

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

PROGRAM_NAME = "tagsift"

GTF_FIELD_COUNT = 9

# GTF attribute keys, in order of preference
TRANSCRIPT_TYPE_KEYS = ("transcript_type", "transcript_biotype")


class ReadNumber(IntEnum):
    """
    Position of a read within its template, as set by the 0x40/0x80 SAM flags.
    """

    FIRST = 1
    SECOND = 2


class AlignmentMode(StrEnum):
    """
    pysam open modes, keyed by alignment format.
    """

    SAM = "r"
    BAM = "rb"
    CRAM = "rc"


class TagValuesError(ValueError):
    pass


class GTFFormatError(ValueError):
    pass


class SequenceDictionaryError(ValueError):
    pass


class AlignmentFormatError(ValueError):
    pass
