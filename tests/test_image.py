"""Image decoder and chain tests"""

import dataclasses
import io

import pytest

from o65dump.errors import O65ChainError, O65EOFError, O65FormatError, O65MarkerError
from o65dump.o65_reader import O65Reader, iter_images, read_image
from o65dump.types import ModeFlag, OptionType, RelocType, SegmentID

from o65_builder import build_image


def sample_image(mode=0):
    return build_image(
        mode=mode,
        tbase=0x1000,
        dbase=0x2000,
        text=b'\xad\x00\x20\x20\x00\x00\x60',
        data=b'\x01\x02',
        options=[(OptionType.FILENAME, b'hello.a65')],
        undefined=[b'putc'],
        text_relocs=bytes([2, RelocType.WORD | SegmentID.DATA,
                           3, RelocType.WORD | SegmentID.UNDEF, 0, 0,
                           0]),
        data_relocs=b'\x00',
        exported=[(b'start', SegmentID.TEXT, 0x1000)],
    )


def test_read_image():
    image = read_image(io.BytesIO(sample_image()))

    assert image.header.tbase == 0x1000
    assert [o.data for o in image.options] == [b'hello.a65']
    assert image.text.data == b'\xad\x00\x20\x20\x00\x00\x60'
    assert image.text.length == 7
    assert image.data.data == b'\x01\x02'
    assert image.data.chunks[0].address == 0x2000
    assert image.undefined_symbols == (b'putc',)
    assert [(r.address, r.segment_id) for r in image.text_relocs] == [
        (0x1001, SegmentID.DATA),
        (0x1004, SegmentID.UNDEF),
    ]
    assert image.text_relocs[1].undef_index == 0
    assert image.data_relocs == ()
    assert [(s.name, s.value) for s in image.exported_symbols] == [(b'start', 0x1000)]


def test_read_32bit_image():
    data = build_image(mode=ModeFlag.SIZE_32BIT, tbase=0x00010000,
                       text=b'\xea' * 20,
                       text_relocs=bytes([5, RelocType.WORD | SegmentID.TEXT, 0]),
                       exported=[(b'x', SegmentID.TEXT, 0x00010004)])
    image = read_image(io.BytesIO(data))

    assert image.header.is_32bit
    assert [c.address for c in image.text.chunks] == [0x00010000, 0x00010010]
    assert image.text_relocs[0].address == 0x00010004
    assert image.exported_symbols[0].value == 0x00010004


def test_image_is_immutable():
    image = read_image(io.BytesIO(sample_image()))
    with pytest.raises(dataclasses.FrozenInstanceError):
        image.options = ()


def wide_image():
    return build_image(mode=ModeFlag.SIZE_32BIT, tbase=0x1000, text=b'\xea' * 4,
                       exported=[(b'x', SegmentID.TEXT, 0x1002)])


@pytest.mark.parametrize("make", [sample_image, wide_image])
def test_header_fields_are_immutable(make):
    header = read_image(io.BytesIO(make())).header
    with pytest.raises(dataclasses.FrozenInstanceError):
        header.fields.tbase = 0
    with pytest.raises(dataclasses.FrozenInstanceError):
        header.tbase = 0
    assert header.tbase == 0x1000


@pytest.mark.parametrize("make", [sample_image, wide_image])
def test_same_bytes_decode_equal(make):
    data = make()
    first = read_image(io.BytesIO(data))
    second = read_image(io.BytesIO(data))

    assert first.header == second.header
    assert first == second
    assert hash(first.header) == hash(second.header)
    assert hash(first) == hash(second)
    assert len({first.header, second.header}) == 1


def test_headers_of_different_width_differ():
    narrow = read_image(io.BytesIO(build_image())).header
    wide = read_image(io.BytesIO(build_image(mode=ModeFlag.SIZE_32BIT))).header
    assert narrow.fields != wide.fields
    assert narrow != wide


def test_single_image_yields_once():
    stream = io.BytesIO(sample_image() + b'rest')
    images = iter_images(stream)

    assert next(images).text.base == 0x1000
    with pytest.raises(StopIteration):
        next(images)
    assert stream.read() == b'rest'


@pytest.mark.parametrize("cut", [30, 40, 45, 50, -8, -1])
def test_truncated_image_has_no_result(cut):
    data = sample_image()[:cut]
    with pytest.raises(O65EOFError):
        read_image(io.BytesIO(data))


def test_chain_stops_after_last_image():
    first = sample_image(mode=ModeFlag.CHAIN)
    second = build_image(tbase=0x4000, text=b'\x60')
    stream = io.BytesIO(first + second + b'garbage')

    images = list(iter_images(stream))

    assert len(images) == 2
    assert images[0].header.is_chained
    assert not images[1].header.is_chained
    assert images[1].text.base == 0x4000
    # Nothing after the last image is touched
    assert stream.read() == b'garbage'


def test_chain_of_three():
    data = (build_image(mode=ModeFlag.CHAIN)
            + build_image(mode=ModeFlag.CHAIN | ModeFlag.SIZE_32BIT)
            + build_image())
    images = list(iter_images(io.BytesIO(data)))
    assert [i.header.is_32bit for i in images] == [False, True, False]


def test_first_header_not_o65():
    with pytest.raises(O65MarkerError) as excinfo:
        list(iter_images(io.BytesIO(b'\x7fELF' + bytes(60))))
    assert not isinstance(excinfo.value, O65ChainError)


def test_corrupt_chain_marker():
    data = sample_image(mode=ModeFlag.CHAIN) + b'\x00\x00o65\x00' + bytes(20)
    images = iter_images(io.BytesIO(data))

    first = next(images)
    assert first.header.is_chained
    with pytest.raises(O65ChainError) as excinfo:
        next(images)
    assert excinfo.value.index == 1
    assert isinstance(excinfo.value.__cause__, O65MarkerError)


def test_chain_flag_without_next_image():
    data = sample_image(mode=ModeFlag.CHAIN)
    with pytest.raises(O65ChainError) as excinfo:
        list(iter_images(io.BytesIO(data)))
    assert excinfo.value.index == 1


def test_truncated_chained_image_body():
    data = sample_image(mode=ModeFlag.CHAIN) + sample_image()[:40]
    with pytest.raises(O65EOFError):
        list(iter_images(io.BytesIO(data)))


def test_malformed_option_aborts_image():
    data = bytearray(build_image(options=[(OptionType.AUTHOR, b'me')]))
    data[26] = 1
    with pytest.raises(O65FormatError):
        read_image(io.BytesIO(bytes(data)))


def test_reader_loads_file(tmp_path):
    path = tmp_path / "chain.o65"
    path.write_bytes(sample_image(mode=ModeFlag.CHAIN) + sample_image())

    with O65Reader(str(path)) as reader:
        images = reader.load()
        assert len(images) == 2
        assert reader.images_read == images
    assert reader.file_handle is None


def test_reader_missing_file(tmp_path):
    with pytest.raises(OSError):
        with O65Reader(str(tmp_path / "missing.o65")):
            pass
