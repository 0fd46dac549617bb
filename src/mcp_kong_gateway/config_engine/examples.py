"""Annotated example documents (``gatewaycraft example``)."""

EXAMPLE_FULL = """\
# Apply with: gatewaycraft apply -f <file>
# Full form: upstreams / services / routes

upstreams:
  - name: user-service-upstream     # services bind to it through their host
    targets:                        # backend instances (host:port)
      - target: user-svc-1:8080
        weight: 100                 # 0-1000, 100 when unset
      - target: user-svc-2:8080
        weight: 100

services:
  - name: user-service
    upstream: user-service-upstream # the service host becomes this upstream
    protocol: http                  # default http
    port: 8080                      # default 80 for http, 443 for https
    path: /api                      # optional base path
    retries: 5                      # optional
    connect_timeout: 60000          # optional, milliseconds
    read_timeout: 60000             # optional, milliseconds
    write_timeout: 60000            # optional, milliseconds

routes:
  - name: user-list
    service: user-service           # existing or declared service
    hosts: ["api.example.com"]      # optional host match
    paths: ["/v1/users"]
    methods: ["GET"]                # optional, any method when omitted
    protocols: ["http", "https"]    # optional
    path_handling: v1               # v0 or v1
    strip_path: true                # strip the matched prefix before proxying
    preserve_host: false            # keep the client Host header
    request_buffering: true
    response_buffering: true
    headers:                        # optional header match (name -> values)
      X-Env: ["prod"]
    tags: ["team:user", "env:prod"]
"""

EXAMPLE_ROUTES_SIMPLE = """\
# Shorthand: a top-level list of routes. A route without a service gets
# <name>-service and <name>-upstream created from its backend.
# service_name / upstream_name override the generated names.

- name: demo-route                  # generates demo-route-service / demo-route-upstream
  hosts: ["api.example.com"]        # optional
  paths: ["/demo"]                  # with v1, /demo does not match /demox
  methods: ["GET", "POST"]          # optional
  protocols: ["http", "https"]      # optional
  path_handling: v1
  strip_path: true
  preserve_host: false
  # service_name: custom-svc        # optional name for the generated service
  # upstream_name: custom-up        # optional name for the generated upstream
  backend:
    protocol: http                  # default http
    port: 8080                      # default 80 for http, 443 for https
    path: /api                      # base path, joined with the stripped request path
    targets:
      - target: demo-svc-1:8080
        weight: 100                 # 0-1000, 100 when unset
      - target: demo-svc-2:8080
        weight: 100
"""

EXAMPLE_ROUTE_BASIC = """\
# A route bound to a service that already exists.
# Nothing besides the route is created.

routes:
  - name: echo-root
    service: echo                   # required: existing service name
    hosts: ["example.com"]          # optional
    paths: ["/"]
    methods: ["GET", "HEAD"]        # optional
    protocols: ["http", "https"]    # optional
    path_handling: v1
    strip_path: false               # usually false for the root path
    # preserve_host: false
    # headers:
    #   X-Debug: ["1"]
    # tags: ["team:core"]
"""

EXAMPLES = {
    "full": EXAMPLE_FULL,
    "routes-simple": EXAMPLE_ROUTES_SIMPLE,
    "route-basic": EXAMPLE_ROUTE_BASIC,
}


def strip_comments(text: str) -> str:
    """Drop whole-line comments, keep trailing ones."""
    return "".join(
        line for line in text.splitlines(keepends=True)
        if not line.strip().startswith("#")
    )


def example_document(kind: str = "full", comments: bool = True) -> str:
    """
    YAML template of the given kind.

    Raises:
        ValueError: Unknown kind
    """
    key = (kind or "full").strip().lower()
    if key not in EXAMPLES:
        raise ValueError(
            f"Unknown example type '{kind}': choose one of {', '.join(EXAMPLES)}"
        )
    text = EXAMPLES[key]
    return text if comments else strip_comments(text)
