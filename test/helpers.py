import pysam


def make_read(name: str = "read1", flag: int = 0x4, **tags) -> pysam.AlignedSegment:
    """
    Build an unplaced read with the given flag and tags.
    """
    read = pysam.AlignedSegment()
    read.query_name = name
    read.query_sequence = "ACGTACGTAC"
    read.query_qualities = pysam.qualitystring_to_array("IIIIIIIIII")
    read.flag = flag
    read.reference_id = -1
    read.reference_start = -1
    read.mapping_quality = 0
    for tag, value in tags.items():
        read.set_tag(tag, value)
    return read


def make_mapped_read(name: str = "read1", flag: int = 0x0, mapq: int = 60, **tags) -> pysam.AlignedSegment:
    read = make_read(name, flag, **tags)
    read.reference_id = 0
    read.reference_start = 100
    read.cigarstring = "10M"
    read.mapping_quality = mapq
    return read
