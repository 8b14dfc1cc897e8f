# pylint: disable=missing-module-docstring,missing-function-docstring

from protocol.framing import FrameExtractor


FRAME_A = '{"heartRate":[74],"spo2":[96.5],"gsr":[2.1],"ecg":[1.12]}'
FRAME_B = '{"heartRate":80,"spo2":97,"gsr":2.4,"ecg":1.05}'


def _texts(frames):
    return [f.text for f in frames]


def test_split_frame_emits_once_and_keeps_tail():
    ex = FrameExtractor()

    first = ex.feed(b'{"heartRate":[7')
    second = ex.feed(b'4],"spo2":[96.5],"gsr":[2.1],"ecg":[1.12]}{"heartRate":[80]')

    assert first == []
    assert _texts(second) == [FRAME_A]
    assert ex.pending == '{"heartRate":[80]'


def test_multiple_frames_in_one_chunk_keep_order_and_index():
    ex = FrameExtractor()

    frames = ex.feed((FRAME_A + FRAME_B + FRAME_A).encode())

    assert _texts(frames) == [FRAME_A, FRAME_B, FRAME_A]
    assert [f.index for f in frames] == [0, 1, 2]
    assert ex.pending == ""
    assert ex.stats.frames_emitted == 3


def test_every_split_point_yields_same_frames():
    stream = ("xx" + FRAME_A + "}" + FRAME_B + "{{" + FRAME_A).encode()
    expected = _texts(FrameExtractor().feed(stream))
    assert expected == [FRAME_A, FRAME_B, FRAME_A]

    for cut in range(len(stream) + 1):
        ex = FrameExtractor()
        frames = ex.feed(stream[:cut]) + ex.feed(stream[cut:])
        assert _texts(frames) == expected, cut


def test_byte_by_byte_feed_matches_single_feed():
    stream = (FRAME_B + FRAME_A).encode()
    ex = FrameExtractor()

    frames = []
    for i in range(len(stream)):
        frames += ex.feed(stream[i:i + 1])

    assert _texts(frames) == [FRAME_B, FRAME_A]


def test_stray_close_brace_is_noise():
    ex = FrameExtractor()

    frames = ex.feed(("}garbage}" + FRAME_B).encode())

    assert _texts(frames) == [FRAME_B]
    assert ex.stats.noise_chars_dropped == len("}garbage}")


def test_leading_noise_uses_innermost_open_brace():
    ex = FrameExtractor()

    frames = ex.feed(b'{{noise{"heartRate":1,"spo2":2,"ecg":3,"gsr":4}')

    assert _texts(frames) == ['{"heartRate":1,"spo2":2,"ecg":3,"gsr":4}']
    assert ex.pending == ""


def test_incomplete_buffer_never_emits():
    ex = FrameExtractor()

    assert ex.feed(b'{"heartRate":[74],"spo2":[96') == []
    assert ex.feed(b"") == []
    assert ex.pending == '{"heartRate":[74],"spo2":[96'


def test_multibyte_character_split_across_chunks():
    ex = FrameExtractor()
    data = '{"note":"café"}'.encode("utf-8")
    split = data.index(b"\xa9")

    assert ex.feed(data[:split]) == []
    frames = ex.feed(data[split:])

    assert _texts(frames) == ['{"note":"café"}']


def test_invalid_bytes_are_replaced_not_raised():
    ex = FrameExtractor()

    frames = ex.feed(b'\xff\xfe{"a":1}')

    assert _texts(frames) == ['{"a":1}']


def test_reset_discards_tail():
    ex = FrameExtractor()
    ex.feed(b'{"heartRate":')

    ex.reset()

    assert ex.pending == ""
    assert ex.stats.resets == 1
    assert _texts(ex.feed(FRAME_B.encode())) == [FRAME_B]


def test_feed_text_matches_byte_feed():
    stream = "noise" + FRAME_A + FRAME_B[:12]

    by_text = FrameExtractor()
    by_bytes = FrameExtractor()

    assert _texts(by_text.feed_text(stream)) == _texts(by_bytes.feed(stream.encode()))
    assert by_text.pending == by_bytes.pending == FRAME_B[:12]
    assert _texts(by_text.feed_text(FRAME_B[12:])) == [FRAME_B]
