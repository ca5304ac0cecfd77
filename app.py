#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Application entrypoint for vaultjournal.

Configures logging, then boots the Textual UI app.
"""
from __future__ import annotations

import asyncio

from vaultjournal.config import config_dir, load_config
from vaultjournal.logging_config import configure_log_file, configure_logging
from vaultjournal.ui import VaultJournalApp


def main() -> None:
    """Run the Textual application."""
    cfg = load_config()
    configure_logging(str(cfg.get("log_level", "WARNING")))
    configure_log_file(config_dir())
    asyncio.run(VaultJournalApp().run_async())


if __name__ == "__main__":
    main()
