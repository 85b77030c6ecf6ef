"""markermap.integrations: external collaborator gateways.

Services reach the discussion forum and the geocoding API only through a
gateway in this package, never via bare ORM writes to forum tables or bare
`requests` calls.

Current gateways:
  forum_gateway.ForumGateway        : discussion threads (lookup, create, lock, retitle)
  geocoding_gateway.GeocodingGateway: Nominatim address search, shared rate budget
"""
