"""
Tests for the volume extent report parser.
"""

from volume_mapper.extent_parser import parse_extent_report
from volume_mapper.models import ExtentRecord


SINGLE_VOLUME = (
    "Volume: \\\\?\\Volume{aaaa-bbbb}\n"
    " Mounted at: D:\\\n"
    "   Extent [0]: Disk: 0 Offset: 1048576 Length: 524288"
)


def test_single_volume():
    volumes = parse_extent_report(SINGLE_VOLUME)
    assert len(volumes) == 1
    vol = volumes[0]
    assert vol.volume_id == "aaaa-bbbb"
    assert vol.mount_point == "D:\\"
    assert vol.extents == [ExtentRecord(extent_id=0, disk_id=0, offset=1048576, length=524288)]


def test_fixture_report(extent_report):
    volumes = parse_extent_report(extent_report)
    assert [v.mount_point for v in volumes] == ["", "C:\\", "D:\\", "E:\\"]
    assert [len(v.extents) for v in volumes] == [1, 1, 1, 0]
    assert volumes[2].volume_id == "9f8e7d6c-5b4a-4f3e-8d2c-1b0a99887766"
    assert volumes[1].extents[0].length == 107266179072


def test_volume_without_extents_is_kept():
    text = "Volume: \\\\?\\Volume{0123abcd}\n Mounted at: F:\\\n"
    volumes = parse_extent_report(text)
    assert len(volumes) == 1
    assert volumes[0].mount_point == "F:\\"
    assert volumes[0].extents == []


def test_negative_length_drops_only_that_extent():
    text = (
        "Volume: \\\\?\\Volume{aaaa-bbbb}\n"
        " Mounted at: D:\\\n"
        "   Extent [0]: Disk: 0 Offset: 1048576 Length: 524288\n"
        "   Extent [1]: Disk: 0 Offset: 2097152 Length: -4096\n"
        "   Extent [2]: Disk: 1 Offset: 1048576 Length: 8192\n"
    )
    volumes = parse_extent_report(text)
    assert [e.extent_id for e in volumes[0].extents] == [0, 2]


def test_non_numeric_and_oversized_values_are_dropped():
    text = (
        "Volume: \\\\?\\Volume{aaaa-bbbb}\n"
        " Mounted at: D:\\\n"
        "   Extent [0]: Disk: x Offset: 1048576 Length: 524288\n"
        "   Extent [1]: Disk: 0 Offset: 99999999999999999999 Length: 1\n"
        "   Extent [2]: Disk: 0 Offset: 0 Length: 9223372036854775807\n"
        "   Extent [3]: Disk: 0 Offset: 1048576 Length: 524288.75\n"
        "   Extent [4]: Disk: 0 Offset: 1048576.5 Length: 524288\n"
        "   Extent [5]: Disk: 0 Offset: 1048576 Length: 524288KB\n"
    )
    extents = parse_extent_report(text)[0].extents
    assert [e.extent_id for e in extents] == [2]
    assert extents[0].length == 2 ** 63 - 1


def test_noise_chunks_are_dropped():
    text = (
        "banner text\n"
        "Volume: garbage\n"
        + SINGLE_VOLUME + "\n"
        "Volume: \\\\?\\Volume{not-hex!}\n Mounted at: Z:\\\n"
    )
    volumes = parse_extent_report(text)
    assert [v.volume_id for v in volumes] == ["aaaa-bbbb"]


def test_one_record_per_header_and_extent_line():
    blocks = []
    for i in range(5):
        lines = [f"Volume: \\\\?\\Volume{{{i:08x}-0000}}", f" Mounted at: C:\\mnt\\v{i}"]
        lines += [f"   Extent [{j}]: Disk: {i} Offset: {j * 4096} Length: 4096" for j in range(i)]
        blocks.append("\n".join(lines))
    volumes = parse_extent_report("\n".join(blocks))
    assert len(volumes) == 5
    assert [len(v.extents) for v in volumes] == [0, 1, 2, 3, 4]
    assert volumes[3].mount_point == "C:\\mnt\\v3"


def test_crlf_line_endings():
    volumes = parse_extent_report(SINGLE_VOLUME.replace("\n", "\r\n") + "\r\n")
    assert volumes[0].mount_point == "D:\\"
    assert len(volumes[0].extents) == 1


def test_empty_input():
    assert parse_extent_report("") == []
