"""CLI tools for chromaFM.

- ``python -m chromafm.cli.analyze`` -- compute a listener's color buckets
  (one window or the full bundle) and print them as a table or JSON.
"""
