"""
punlock — materialize vault secrets onto volatile local storage.

Public API:
    punlock.app.run(ctx)                    → exit code for one run
    punlock.pipeline.write_secrets(...)     → (success_count, total_count)
    punlock.resolver.resolve(doc, query)    → extracted secret string
"""

__version__ = "0.1.0"
