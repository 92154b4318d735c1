"""Widget displaying a rendered waveform frame with its tick labels."""

from PySide6.QtCore import QRectF, Qt, Signal
from PySide6.QtGui import QColor, QImage, QPainter
from PySide6.QtWidgets import QComboBox, QHBoxLayout, QLabel, QSizePolicy, QVBoxLayout, QWidget

from cardioscope.models.simulation import ResultModel
from cardioscope.rendering.labels import TextAnchor, TickLabel
from cardioscope.rendering.plot import PlotFrame, WaveformPlot
from cardioscope.rendering.rasterizer import PixelBuffer, RenderStyle

LABEL_BOX_WIDTH = 80
LABEL_BOX_HEIGHT = 20
LABEL_OFFSET = 6


def buffer_to_image(buffer: PixelBuffer) -> QImage:
    """Copy a pixel buffer into a QImage."""
    image = QImage(
        buffer.to_bytes(),
        buffer.width,
        buffer.height,
        buffer.width * 4,
        QImage.Format.Format_RGBA8888,
    )
    # QImage does not own the bytes passed in.
    return image.copy()


def label_rect(label: TickLabel, width: float, height: float) -> QRectF:
    """Widget-space text box for ``label`` on a ``width x height`` surface."""
    x = label.x * width
    y = (1.0 - label.y) * height
    if label.anchor is TextAnchor.TOP_CENTER:
        return QRectF(x - LABEL_BOX_WIDTH / 2, y + LABEL_OFFSET, LABEL_BOX_WIDTH, LABEL_BOX_HEIGHT)
    return QRectF(x - LABEL_OFFSET - LABEL_BOX_WIDTH, y - LABEL_BOX_HEIGHT / 2, LABEL_BOX_WIDTH, LABEL_BOX_HEIGHT)


class WaveformCanvas(QWidget):
    """Paints a PlotFrame scaled to the widget size."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self._image: QImage | None = None
        self._labels: list[TickLabel] = []
        self._label_color = QColor(Qt.GlobalColor.white)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setMinimumSize(320, 120)

    @property
    def labels(self) -> list[TickLabel]:
        return list(self._labels)

    def set_frame(self, frame: PlotFrame, label_color) -> None:
        self._image = buffer_to_image(frame.buffer)
        self._labels = frame.x_labels + frame.y_labels
        self._label_color = QColor(*label_color)
        self.update()

    def paintEvent(self, event) -> None:
        painter = QPainter(self)
        try:
            painter.fillRect(self.rect(), Qt.GlobalColor.black)
            if self._image is None:
                return
            painter.drawImage(self.rect(), self._image)
            painter.setPen(self._label_color)
            width, height = self.width(), self.height()
            for label in self._labels:
                alignment = (
                    Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignTop
                    if label.anchor is TextAnchor.TOP_CENTER
                    else Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter
                )
                painter.drawText(label_rect(label, width, height), alignment, label.text)
        finally:
            painter.end()


class WaveformPlotWidget(QWidget):
    """A selectable output plotted from the latest simulation result."""

    output_changed = Signal(str)

    def __init__(self, output_name: str = "pa", style: RenderStyle | None = None, parent=None):
        super().__init__(parent)
        self._plot = WaveformPlot(output_name, style)
        self._result: ResultModel | None = None
        self._last_frame: PlotFrame | None = None
        self._setup_ui()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.setSpacing(4)

        header = QHBoxLayout()
        header.addWidget(QLabel("Output:"))
        self._output_combo = QComboBox()
        self._output_combo.setEditable(True)
        self._output_combo.addItem(self._plot.output_name)
        self._output_combo.currentTextChanged.connect(self._on_output_selected)
        header.addWidget(self._output_combo, 1)
        self._status_label = QLabel("")
        header.addWidget(self._status_label)
        layout.addLayout(header)

        self._canvas = WaveformCanvas()
        layout.addWidget(self._canvas, 1)

    @property
    def output_name(self) -> str:
        return self._plot.output_name

    @property
    def last_frame(self) -> PlotFrame | None:
        return self._last_frame

    def set_style(self, style: RenderStyle) -> None:
        self._plot.style = style
        self._redraw()

    def set_available_outputs(self, outputs: list[str]) -> None:
        """Offer ``outputs`` in the selector, keeping the current choice."""
        current = self._plot.output_name
        self._output_combo.blockSignals(True)
        self._output_combo.clear()
        self._output_combo.addItems(outputs)
        self._output_combo.setCurrentText(current)
        self._output_combo.blockSignals(False)

    def set_output_name(self, name: str) -> None:
        self._output_combo.setCurrentText(name)

    def display_result(self, result: ResultModel) -> None:
        """Render ``result`` for the selected output."""
        self._result = result
        self._redraw()

    def _on_output_selected(self, name: str) -> None:
        name = name.strip()
        if not name or name == self._plot.output_name:
            return
        self._plot.output_name = name
        self.output_changed.emit(name)
        self._redraw()

    def _redraw(self) -> None:
        if self._result is None:
            return
        frame = self._plot.draw(self._result)
        self._last_frame = frame
        self._status_label.setText("" if frame.found else "not found")
        self._canvas.set_frame(frame, self._plot.style.label_color)
