"""Memory records, their storage backends and the authoritative store.

Persisted layout (one JSON document, written whole on every change):
    [
      {
        "identifier": "9f1c...",
        "title": "Beach Day",
        "description": "",
        "latitude": 10.0,
        "longitude": 20.0,
        "date": "2024-06-01",
        "imageReference": "",
        "tags": ["sun", "sand"]
      }
    ]
"""
