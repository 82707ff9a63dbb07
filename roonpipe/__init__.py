"""
RoonPipe: search a Roon library and start playback from the desktop.

  daemon.py   long-running service: pairs with the core, tracks the active
                zone, serves search/play on a Unix socket
  cli.py      detached client for that socket
  core.py     connection to the Roon Core (roonapi)
  lib/        browse engine, zone tracking, IPC, config, image cache
"""

__version__ = "1.0.4"
