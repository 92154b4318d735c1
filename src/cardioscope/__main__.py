"""Entry point for Cardioscope application."""

import argparse
import logging
import sys

from PySide6.QtWidgets import QApplication

from cardioscope.services.settings_service import SettingsService
from cardioscope.services.simulation_service import ConnectionSettings
from cardioscope.views.main_window import MainWindow


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cardiovascular solver waveform viewer")
    parser.add_argument("--host", help="Solver host (overrides saved setting)")
    parser.add_argument("--port", type=int, help="Solver port (overrides saved setting)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    return parser.parse_args(argv)


def main() -> int:
    """Run the Cardioscope application."""
    args = parse_args(sys.argv[1:])
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = QApplication(sys.argv[:1])
    app.setApplicationName("Cardioscope")
    app.setOrganizationName("Cardioscope")

    settings_service = SettingsService()
    if args.host or args.port:
        saved = settings_service.get_connection_settings()
        settings_service.set_connection_settings(
            ConnectionSettings(
                host=args.host or saved.host,
                port=args.port or saved.port,
                timeout=saved.timeout,
            )
        )

    window = MainWindow(settings_service=settings_service)
    window.show()

    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
