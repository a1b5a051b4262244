"""
Entry watcher for the Traffic Log Shipper
Follows a JSON-lines file of captured entries (like tail -f)
"""

import os
import sys
import json
import time
import logging
from typing import Callable, Optional

from log_entry import LogEntry


logger = logging.getLogger('Shipper.EntryWatcher')


class EntryWatcher:
    """Read one JSON object per line and hand each entry to a callback"""

    def __init__(self, filepath: str, from_start: bool = False, follow: bool = True):
        self.filepath = filepath
        self.from_start = from_start
        self.follow = follow
        self.file = None
        self.running = False
        self.entries_read = 0

    def start(self, callback: Callable[[LogEntry], None]):
        """Watch the file until stopped, or until EOF when not following"""
        self.running = True
        try:
            # Captured bodies are not always valid UTF-8
            if self.filepath == '-':
                self.file = open(sys.stdin.fileno(), 'r', encoding='utf-8', errors='replace', closefd=False)
                self.follow = False
            else:
                self.file = open(self.filepath, 'r', encoding='utf-8', errors='replace')
                if not self.from_start:
                    self.file.seek(0, os.SEEK_END)

            logger.info(f"Started reading entries from {self.filepath}")

            while self.running:
                line = self.file.readline()
                if line:
                    entry = self.parse_line(line)
                    if entry is not None:
                        self.entries_read += 1
                        callback(entry)
                elif self.follow:
                    # No new line, wait a bit
                    time.sleep(0.1)
                else:
                    break

        except FileNotFoundError:
            logger.error(f"File not found: {self.filepath}")
        except Exception as e:
            logger.error(f"Error reading entries from {self.filepath}: {e}", exc_info=True)
        finally:
            if self.file is not None:
                self.file.close()
            self.running = False

    def parse_line(self, line: str) -> Optional[LogEntry]:
        line = line.strip()
        if not line:
            return None
        try:
            data = json.loads(line)
            if not isinstance(data, dict):
                raise ValueError("entry must be a JSON object")
            return LogEntry.from_dict(data)
        except ValueError as e:
            logger.warning(f"Skipping invalid entry in {self.filepath}: {e}")
            return None

    def stop(self):
        """Stop watching the file"""
        self.running = False
