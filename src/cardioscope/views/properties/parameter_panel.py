"""Panel for editing model parameters."""

from PySide6.QtCore import QTimer, Signal
from PySide6.QtWidgets import (
    QCheckBox,
    QDoubleSpinBox,
    QFormLayout,
    QGroupBox,
    QLabel,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from cardioscope.models.simulation import ModelMetadata, ParameterConstraint, ParameterSet

# Delay before an edit triggers an automatic run.
AUTO_RUN_DELAY_MS = 400
MAX_DECIMALS = 6


def _decimals_for(constraint: ParameterConstraint, value: float) -> int:
    """Decimals for an editor of ``constraint`` starting at ``value``.

    Enough to step through the range and to show ``value`` unrounded.
    """
    span = constraint.maximum - constraint.minimum
    if span <= 1:
        decimals = 3
    elif span <= 10:
        decimals = 2
    else:
        decimals = 1
    fraction = f"{value:.{MAX_DECIMALS}f}".rstrip("0").partition(".")[2]
    return max(decimals, len(fraction))


class ParameterPanel(QWidget):
    """Spin boxes for every parameter of the loaded model.

    Editors are built from each parameter's :class:`ParameterConstraint`.
    """

    parameters_changed = Signal(object)  # ParameterSet
    run_requested = Signal(object)  # ParameterSet

    def __init__(self, parent=None):
        super().__init__(parent)
        self._editors: dict[str, QDoubleSpinBox] = {}
        self._constraints: dict[str, ParameterConstraint] = {}
        self._auto_run_timer = QTimer(self)
        self._auto_run_timer.setSingleShot(True)
        self._auto_run_timer.setInterval(AUTO_RUN_DELAY_MS)
        self._auto_run_timer.timeout.connect(self._emit_run_requested)
        self._setup_ui()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(5, 5, 5, 5)

        self._model_label = QLabel("No model loaded")
        layout.addWidget(self._model_label)

        group = QGroupBox("Parameters")
        self._form = QFormLayout(group)
        layout.addWidget(group)

        self._auto_run_check = QCheckBox("Run on change")
        self._auto_run_check.setChecked(True)
        layout.addWidget(self._auto_run_check)

        self._run_button = QPushButton("Run Simulation")
        self._run_button.clicked.connect(self._emit_run_requested)
        layout.addWidget(self._run_button)
        layout.addStretch()

    @property
    def auto_run(self) -> bool:
        return self._auto_run_check.isChecked()

    @auto_run.setter
    def auto_run(self, enabled: bool) -> None:
        self._auto_run_check.setChecked(enabled)

    def set_metadata(self, metadata: ModelMetadata, values: ParameterSet | None = None) -> None:
        """Rebuild the editors for ``metadata``.

        ``values`` overrides the model defaults for matching names.
        """
        while self._form.rowCount():
            self._form.removeRow(0)
        self._editors.clear()
        self._constraints.clear()
        self._model_label.setText(metadata.model_name)

        for name, default in metadata.parameters.items():
            constraint = metadata.constraint_for(name)
            value = values[name] if values is not None and name in values else default
            value = constraint.clamp(value)
            editor = QDoubleSpinBox()
            editor.setDecimals(_decimals_for(constraint, value))
            editor.setRange(constraint.minimum, constraint.maximum)
            editor.setSingleStep((constraint.maximum - constraint.minimum) / 100.0)
            editor.setValue(value)
            editor.valueChanged.connect(self._on_value_changed)
            self._form.addRow(name, editor)
            self._editors[name] = editor
            self._constraints[name] = constraint

    def parameters(self) -> ParameterSet:
        """Return the current editor values."""
        return ParameterSet((name, editor.value()) for name, editor in self._editors.items())

    def set_running(self, running: bool) -> None:
        self._run_button.setEnabled(not running)

    def _on_value_changed(self, _value: float) -> None:
        self.parameters_changed.emit(self.parameters())
        if self.auto_run:
            self._auto_run_timer.start()

    def _emit_run_requested(self) -> None:
        self._auto_run_timer.stop()
        self.run_requested.emit(self.parameters())
