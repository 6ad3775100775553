"""HTTP cross-cutting helpers: problem+json handlers, request ids and CORS."""
