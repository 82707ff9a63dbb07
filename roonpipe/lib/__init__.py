"""
Shared building blocks for the RoonPipe daemon and client.

  browse.py       BrowseLoadClient, awaitable browse/load calls
  actions.py      ActionDiscoverer / ActionExecutor tree walks
  search.py       SearchSession, query to actionable results
  zones.py        State and ZoneStateSynchronizer
  ipc.py          Unix socket server, client and instance probe
  image_cache.py  image key to local JPEG path
  now_playing.py  now-playing parsing and desktop notifications
  config.py       JSON config loader
  errors.py       exception taxonomy
"""
