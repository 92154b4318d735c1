"""Main application window."""

from PySide6.QtCore import Qt
from PySide6.QtGui import QAction, QKeySequence
from PySide6.QtWidgets import (
    QDockWidget,
    QLabel,
    QMainWindow,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from cardioscope.models.simulation import ModelMetadata, ParameterSet, ResultModel
from cardioscope.services.error_service import ErrorService
from cardioscope.services.settings_service import SettingsService
from cardioscope.services.simulation_service import SimulationService, SimulationState
from cardioscope.views.properties import ParameterPanel
from cardioscope.views.waveform import WaveformPlotWidget


class MainWindow(QMainWindow):
    """Main window: parameter dock plus one plot per configured output."""

    def __init__(
        self,
        settings_service: SettingsService | None = None,
        simulation_service: SimulationService | None = None,
        show_dialogs: bool = True,
        parent=None,
    ):
        super().__init__(parent)
        self._settings_service = settings_service or SettingsService()
        self._simulation_service = simulation_service or SimulationService(self._settings_service)
        self._error_service = ErrorService(self)
        self._show_dialogs = show_dialogs
        self._plots: list[WaveformPlotWidget] = []

        self._setup_window()
        self._create_actions()
        self._create_toolbar()
        self._create_dock_widgets()
        self._connect_signals()

    def _setup_window(self) -> None:
        self.setWindowTitle("Cardioscope")
        self.resize(1200, 800)

        central = QWidget()
        layout = QVBoxLayout(central)
        style = self._settings_service.get_render_style()
        for output_name in self._settings_service.get_plot_outputs():
            plot = WaveformPlotWidget(output_name, style)
            plot.output_changed.connect(self._on_plot_output_changed)
            layout.addWidget(plot, 1)
            self._plots.append(plot)
        self.setCentralWidget(central)

        self._state_label = QLabel("Idle")
        self.statusBar().addPermanentWidget(self._state_label)

    def _create_actions(self) -> None:
        self._action_connect = QAction("&Load Model", self)
        self._action_connect.setShortcut(QKeySequence("Ctrl+L"))
        self._action_connect.triggered.connect(self.load_model)

        self._action_run = QAction("&Run", self)
        self._action_run.setShortcut(QKeySequence("F5"))
        self._action_run.triggered.connect(self.run_simulation)

        self._action_stop = QAction("&Stop", self)
        self._action_stop.setShortcut(QKeySequence("Shift+F5"))
        self._action_stop.setEnabled(False)
        self._action_stop.triggered.connect(self._simulation_service.stop)

    def _create_toolbar(self) -> None:
        toolbar = QToolBar("Simulation")
        toolbar.setObjectName("SimulationToolbar")
        toolbar.addAction(self._action_connect)
        toolbar.addAction(self._action_run)
        toolbar.addAction(self._action_stop)
        self.addToolBar(toolbar)

    def _create_dock_widgets(self) -> None:
        self._parameter_panel = ParameterPanel()
        dock = QDockWidget("Model", self)
        dock.setObjectName("ModelDock")
        dock.setWidget(self._parameter_panel)
        self.addDockWidget(Qt.DockWidgetArea.LeftDockWidgetArea, dock)

    def _connect_signals(self) -> None:
        service = self._simulation_service
        service.state_changed.connect(self._on_state_changed)
        service.metadata_loaded.connect(self._on_metadata_loaded)
        service.simulation_finished.connect(self._on_simulation_finished)
        service.failed.connect(self._on_simulation_failed)
        service.error.connect(self._on_service_message)
        self._parameter_panel.run_requested.connect(self._on_run_requested)

    @property
    def plots(self) -> list[WaveformPlotWidget]:
        return list(self._plots)

    @property
    def parameter_panel(self) -> ParameterPanel:
        return self._parameter_panel

    def load_model(self) -> None:
        """Fetch the model description, then run it with the default values."""
        self._simulation_service.load_metadata(run_after=True)

    def run_simulation(self) -> None:
        """Run with the current parameter values."""
        self._on_run_requested(self._parameter_panel.parameters())

    def _on_run_requested(self, parameters: ParameterSet) -> None:
        if not parameters:
            self.load_model()
            return
        self._settings_service.set_parameters(parameters)
        self._simulation_service.run_simulation(parameters)

    def _on_state_changed(self, state: SimulationState) -> None:
        running = state == SimulationState.RUNNING
        self._action_run.setEnabled(not running)
        self._action_connect.setEnabled(not running)
        self._action_stop.setEnabled(running)
        self._parameter_panel.set_running(running)
        self._state_label.setText(state.name.capitalize())

    def _on_metadata_loaded(self, metadata: ModelMetadata) -> None:
        saved = self._settings_service.get_parameters()
        self._parameter_panel.set_metadata(metadata, saved)
        for plot in self._plots:
            plot.set_available_outputs(list(metadata.outputs))
        self.statusBar().showMessage(f"Loaded model: {metadata.model_name}", 4000)

    def _on_simulation_finished(self, result: ResultModel) -> None:
        for plot in self._plots:
            plot.display_result(result)
        self.statusBar().showMessage(f"Received {result.sample_count} samples", 3000)

    def _on_simulation_failed(self, exception: Exception) -> None:
        if self._show_dialogs:
            self._error_service.show_exception(exception, "running the simulation")

    def _on_service_message(self, message: str) -> None:
        self.statusBar().showMessage(message, 5000)

    def _on_plot_output_changed(self, _name: str) -> None:
        self._settings_service.set_plot_outputs([plot.output_name for plot in self._plots])

    def showEvent(self, event) -> None:
        super().showEvent(event)
        if self._simulation_service.metadata is None and not self._simulation_service.is_running:
            self.load_model()
