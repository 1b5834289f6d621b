"""CLI tools for the suggestion engine.

- ``python -m suggestion_engine.cli worker`` - run the job worker standalone
- ``python -m suggestion_engine.cli suggest <appid>`` - compute and print
- ``python -m suggestion_engine.cli enqueue <appid>`` - enqueue a job
- ``python -m suggestion_engine.cli generate-missing`` - backfill jobs for
  catalog games that have no suggestions yet

Heavy imports (providers, the app module) are deferred into the handlers
so ``--help`` stays fast.
"""
