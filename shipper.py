#!/usr/bin/env python3
"""
Traffic Log Shipper
Main entry point
"""

import sys
import logging
import argparse
import threading

from config_loader import ConfigLoader
from entry_watcher import EntryWatcher
from errors import ShipperError
from export_controller import ExportController
from exporters.factory import BackendFactory
from log_shipper import LogShipper


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger('Shipper')


class ShipperService:
    """Wires configuration, controller, shipper and entry source together"""

    def __init__(self, config_path: str, input_path: str, from_start: bool = False):
        self.config_path = config_path
        self.input_path = input_path
        self.from_start = from_start
        self.controller = ExportController(notifier=self._notify)
        self.shipper = None
        self.watcher = None

    def _notify(self, title: str, message: str):
        print(f"[{title}] {message}", file=sys.stderr)
        if self.shipper is not None and not self.controller.is_enabled(self.shipper):
            # Nothing left to ship to
            if self.watcher is not None:
                self.watcher.stop()

    def setup(self):
        """Build the shipper from configuration and enable it"""
        config = ConfigLoader(self.config_path).load_config()

        backend = BackendFactory.create(config['exporter_type'], config)
        if backend is None:
            raise ShipperError(f"No usable backend for type '{config['exporter_type']}'")

        self.shipper = LogShipper(backend, config, controller=self.controller)
        self.controller.enable_exporter(self.shipper)

    def run(self):
        self.setup()

        self.watcher = EntryWatcher(self.input_path, from_start=self.from_start,
                                    follow=self.input_path != '-')
        thread = threading.Thread(
            target=self.watcher.start,
            args=(self.controller.export_new_entry,),
            daemon=True
        )
        thread.start()

        try:
            while thread.is_alive():
                thread.join(timeout=1)
        except KeyboardInterrupt:
            logger.info("Interrupt detected, stopping service...")
        finally:
            self.stop()

    def stop(self):
        logger.info("Stopping Traffic Log Shipper...")
        if self.watcher is not None:
            self.watcher.stop()
        self.controller.disable_all()
        logger.info("Traffic Log Shipper stopped")


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description='Traffic Log Shipper: ship captured traffic entries to GrayLog over GELF/HTTP'
    )
    parser.add_argument(
        '--config',
        default='/etc/shipper.d',
        help='Configuration file or directory (default: /etc/shipper.d)'
    )
    parser.add_argument(
        '--input',
        default='-',
        help="JSON-lines file of captured entries to follow, or '-' for stdin"
    )
    parser.add_argument(
        '--from-start',
        action='store_true',
        help='Read the input file from the beginning instead of its end'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug mode'
    )

    args = parser.parse_args()

    if args.debug:
        logger.setLevel(logging.DEBUG)
        logging.getLogger().setLevel(logging.DEBUG)

    service = ShipperService(args.config, args.input, from_start=args.from_start)

    try:
        service.run()
    except ShipperError as e:
        logger.error(f"Could not start: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
