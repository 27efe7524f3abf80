from rest_framework.renderers import JSONRenderer


class EnvelopeJSONRenderer(JSONRenderer):
    """
    Wraps successful payloads as {"success": true, "data": ...}.

    Bodies that already carry a "success" key (paginated lists, responses
    built with success_response, error envelopes) are rendered untouched.
    """

    def render(self, data, accepted_media_type=None, renderer_context=None):
        renderer_context = renderer_context or {}
        response = renderer_context.get("response")

        if (
            response is not None
            and response.status_code < 400
            and data is not None
            and not (isinstance(data, dict) and "success" in data)
        ):
            data = {"success": True, "data": data}

        return super().render(data, accepted_media_type, renderer_context)
