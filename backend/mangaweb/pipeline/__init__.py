"""Pipeline package: screenshot -> regions -> text -> positioned translations.

Subpackages:
- `detection` - YOLO-backed text region detection model adapter
- `ocr` - vocabulary, preprocessing, crops, greedy sequence recognizer
- `translate` - translation gateway protocol and implementations
- `utils` - debug visualization

Modules:
- `geometry` - Region and coordinate-space conversions
- `raster` / `io` - RasterImage and its boundary adapters
- `detector` - RegionDetector
- `orchestrator` - concurrent per-region fan-out
"""
