"""Zhichuang aggregate API (n.lconai.com) as an external provider plugin.

Images are synchronous (POST /v1/images/generations). Videos are submitted
as multipart to /v1/videos and polled at /v1/videos/{id}. Sora characters
live under /sora/v1/characters; creation takes ``timestamps`` and
``from_task`` only, the clip URL is not sent.
"""

HOST = "https://n.lconai.com"

MANIFEST = {
    "id": "zhichuang-provider",
    "name": "Zhichuang Aggregate Provider",
    "version": "2.0.0",
    "description": "Zhichuang aggregate API: images, Sora/Veo video and Sora characters.",
    "models": {
        "image": ["doubao-seedream-4-0-250828", "dall-e-3"],
        "video": ["sora_2_0", "sora_2_0_turbo", "sora-2", "veo_3_1-fast"],
    },
}

_SIZES = {"1080x1920": "720x1280", "1024x1024": "1024x1024"}


def _headers(api_key, json_body=True):
    headers = {"Authorization": f"Bearer {api_key or ''}"}
    if json_body:
        headers["Content-Type"] = "application/json"
    return headers


def _video_model(model):
    if model in ("sora_2_0", "sora_2_0_turbo"):
        return "sora-2"
    if model and "veo" in model:
        return "veo_3_1-fast"
    return model


def _data(response):
    data = response.get("data") if isinstance(response, dict) else None
    return data if isinstance(data, dict) else {}


def build_submit_request(request):
    if request.media_type.value == "image":
        return {
            "method": "POST",
            "url": f"{HOST}/v1/images/generations",
            "headers": _headers(request.credential),
            "body": {
                "model": request.model or "doubao-seedream-4-0-250828",
                "prompt": request.prompt,
                "n": 1,
                "type": "normal",
                "size": "1024x1024",
            },
        }

    return {
        "method": "POST",
        "url": f"{HOST}/v1/videos",
        "headers": _headers(request.credential, json_body=False),
        "body": {
            "model": _video_model(request.model),
            "prompt": request.prompt,
            "size": _SIZES.get(request.aspect_ratio, "1280x720"),
            "seconds": 15 if request.video_duration == "15s" else 10,
        },
        "multipart": True,
    }


def parse_submit_response(response):
    items = response.get("data") if isinstance(response, dict) else None
    if isinstance(items, list) and items and isinstance(items[0], dict) and items[0].get("url"):
        return {"task_id": None, "status": "completed", "url": items[0]["url"]}

    task_id = response.get("id") or _data(response).get("id") or response.get("task_id")
    if not task_id:
        error = response.get("error")
        message = error.get("message") if isinstance(error, dict) else error
        return {"task_id": None, "message": message or response.get("message")}
    return {"task_id": str(task_id)}


def build_status_request(task_id, credential):
    return {
        "method": "GET",
        "url": f"{HOST}/v1/videos/{task_id}",
        "headers": _headers(credential),
    }


def parse_status_response(response):
    data = _data(response)
    status = str(response.get("status") or data.get("status") or "").lower()
    progress = response.get("progress", data.get("progress"))

    if status == "completed":
        results = data.get("results") or [{}]
        url = (
            response.get("video_url")
            or data.get("video_url")
            or data.get("url")
            or (results[0].get("url") if isinstance(results[0], dict) else None)
        )
        return {"status": "completed", "url": url}
    if status in ("failed", "cancelled"):
        error = response.get("error") or data.get("error")
        if isinstance(error, dict):
            error = error.get("message")
        return {"status": "failed", "error": error or f"task {status}"}
    return {"status": status or "processing", "progress": progress}


def build_create_actor_request(credential, video_url, timestamps, from_task=None):
    body = {"timestamps": timestamps or "0,3"}
    if from_task:
        body["from_task"] = from_task
    return {
        "method": "POST",
        "url": f"{HOST}/sora/v1/characters",
        "headers": _headers(credential),
        "body": body,
    }


def build_list_actors_request(credential):
    return {"method": "GET", "url": f"{HOST}/sora/v1/characters", "headers": _headers(credential)}


def build_delete_actor_request(credential, actor_id):
    return {
        "method": "DELETE",
        "url": f"{HOST}/sora/v1/characters/{actor_id}",
        "headers": _headers(credential),
    }
