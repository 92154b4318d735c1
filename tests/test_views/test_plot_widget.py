"""Tests for the waveform plot widget."""

from PySide6.QtGui import QImage

from cardioscope.rendering.labels import TextAnchor, TickLabel
from cardioscope.rendering.rasterizer import GREEN, PixelBuffer, RenderStyle
from cardioscope.views.waveform import WaveformPlotWidget
from cardioscope.views.waveform.plot_widget import buffer_to_image, label_rect

STYLE = RenderStyle(width=200, height=80)


def test_buffer_to_image_keeps_orientation(qapp):
    buffer = PixelBuffer(4, 3)
    buffer.set_pixel(0, 0, GREEN)
    image = buffer_to_image(buffer)
    assert image.format() == QImage.Format.Format_RGBA8888
    assert (image.width(), image.height()) == (4, 3)
    # Plot origin is bottom-left, image origin top-left.
    assert image.pixelColor(0, 2).green() == 255
    assert image.pixelColor(0, 0).green() == 0


def test_label_rect_anchors():
    below = label_rect(TickLabel("1.00", 0.5, 0.1, TextAnchor.TOP_CENTER, 1.0), 200, 100)
    assert below.center().x() == 100
    assert below.top() > 90
    left = label_rect(TickLabel("1.00", 0.05, 0.5, TextAnchor.MIDDLE_RIGHT, 1.0), 200, 100)
    assert left.right() < 10
    assert left.center().y() == 50


class TestWaveformPlotWidget:
    """Tests for WaveformPlotWidget."""

    def test_display_result(self, qtbot, result):
        widget = WaveformPlotWidget("pa", STYLE)
        qtbot.addWidget(widget)
        assert widget.last_frame is None

        widget.display_result(result)
        frame = widget.last_frame
        assert frame.found
        assert frame.buffer.width == 200
        assert len(frame.x_labels) == STYLE.x_ticks + 1

    def test_missing_output(self, qtbot, result):
        widget = WaveformPlotWidget("flow", STYLE)
        qtbot.addWidget(widget)
        widget.display_result(result)
        assert not widget.last_frame.found
        assert widget._status_label.text() == "not found"

    def test_selecting_output_redraws(self, qtbot, result):
        widget = WaveformPlotWidget("pa", STYLE)
        qtbot.addWidget(widget)
        widget.display_result(result)
        widget.set_available_outputs(["pa", "plv"])
        assert widget.output_name == "pa"

        with qtbot.waitSignal(widget.output_changed, timeout=1000) as blocker:
            widget.set_output_name("plv")
        assert blocker.args == ["plv"]
        assert widget.last_frame.output_name == "plv"

    def test_set_style(self, qtbot, result):
        widget = WaveformPlotWidget("pa", STYLE)
        qtbot.addWidget(widget)
        widget.display_result(result)
        widget.set_style(RenderStyle(width=64, height=32))
        assert widget.last_frame.buffer.height == 32

    def test_paints_without_result(self, qtbot):
        widget = WaveformPlotWidget("pa", STYLE)
        qtbot.addWidget(widget)
        assert not widget.grab().isNull()
