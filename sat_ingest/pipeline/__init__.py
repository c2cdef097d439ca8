"""
Tile Ingestion Pipeline

1. Plan - tile grid for each staged image
2. Render - crop, pad and encode tiles
3. Persist - batched upload + annotation registration
4. Pod - first upload of a project stands up its training pod
"""
