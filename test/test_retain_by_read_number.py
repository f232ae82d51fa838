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

import pytest

from tagsift.const import ReadNumber
from tagsift.tagfilter import retain_by_read_number
from test.helpers import make_read


def test_first_of_pair(read_pair):
    first, _ = read_pair
    assert retain_by_read_number(first, 1)
    assert not retain_by_read_number(first, 2)


def test_second_of_pair(read_pair):
    _, second = read_pair
    second.is_proper_pair = True
    assert retain_by_read_number(second, 2)
    assert not retain_by_read_number(second, 1)


def test_unpaired_always_retained(unpaired_read):
    assert retain_by_read_number(unpaired_read, 1)
    assert retain_by_read_number(unpaired_read, 2)


def test_paired_without_read_number_flags():
    read = make_read("test", flag=0x1)
    assert not retain_by_read_number(read, 1)
    assert not retain_by_read_number(read, 2)


def test_accepts_enum(read_pair):
    first, second = read_pair
    assert retain_by_read_number(first, ReadNumber.FIRST)
    assert retain_by_read_number(second, ReadNumber.SECOND)


@pytest.mark.parametrize("number", [0, 3, -1])
def test_bad_read_number(read_pair, number):
    with pytest.raises(ValueError):
        retain_by_read_number(read_pair[0], number)
