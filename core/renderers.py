"""
Core — Response Renderer

Wraps all successful responses in the standard envelope:
  { "success": true, "data": ..., "meta": ... }

``meta`` is only present on paginated lists.

@file core/renderers.py
"""

from rest_framework.renderers import JSONRenderer

PAGINATION_KEYS = ('count', 'page', 'total_pages', 'next', 'previous')


class StandardJSONRenderer(JSONRenderer):

    def render(self, data, accepted_media_type=None, renderer_context=None):
        response = renderer_context.get('response') if renderer_context else None

        # Errors are already enveloped by core.exceptions.standard_exception_handler.
        if response is not None and response.status_code >= 400:
            return super().render(data, accepted_media_type, renderer_context)
        if data is None:
            return super().render(data, accepted_media_type, renderer_context)

        if isinstance(data, dict) and 'results' in data and 'count' in data:
            envelope = {
                'success': True,
                'data': data['results'],
                'meta': {key: data.get(key) for key in PAGINATION_KEYS if key in data},
            }
        else:
            envelope = {'success': True, 'data': data}

        return super().render(envelope, accepted_media_type, renderer_context)
