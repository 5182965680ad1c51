#
# Copyright (C) 2023 Intel Corporation
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
import json
from typing import Any, Dict, List, Optional, Sequence, Tuple, cast
from urllib.parse import urlparse

import requests
from requests import Session

from ddforwarder import __version__
from ddforwarder.exceptions import APIError
from ddforwarder.log import get_logger_adapter
from ddforwarder.metrics import DataPoint

logger = get_logger_adapter(__name__)

DEFAULT_API_HOST = "https://app.datadoghq.com"


class BaseAPIClient:
    def __init__(
        self,
        curlify_requests: bool,
        timeout: Optional[float] = None,
    ):
        self._curlify = curlify_requests
        self._timeout = timeout
        self._init_session()

    def _init_session(self) -> None:
        self._session: Session = requests.Session()

    def _get_query_params(self) -> List[Tuple[str, str]]:
        return []

    def _request_url(self, method: str, url: str, data: Any, params: Dict[str, str] = None) -> Dict:
        opts: dict = {"headers": {}, "timeout": self._timeout}
        if params is None:
            params = {}

        if method.upper() == "GET":
            if data is not None:
                params.update(data)
        else:
            opts["headers"]["Content-Type"] = "application/json"
            try:
                opts["data"] = json.dumps(data, ensure_ascii=False).encode("utf-8")
            except TypeError:
                # This should only happen while in development, and is used to get a more indicative error.
                bad_json = str(data)
                logger.exception("Given data is not a valid JSON!", bad_json=bad_json)
                raise

        opts["params"] = self._get_query_params() + [(k, v) for k, v in params.items()]

        resp = self._session.request(method, url, **opts)
        if self._curlify:
            import curlify  # type: ignore  # import here as it's not always required.

            logger.debug(
                "API request",
                curl_command=curlify.to_curl(resp.request),
                status_code=resp.status_code,
            )

        if 400 <= resp.status_code < 500:
            try:
                response_data = resp.json()
            except ValueError:
                raise APIError(resp.text, status_code=resp.status_code)
            raise APIError(_error_message(response_data), response_data, resp.status_code)
        else:
            resp.raise_for_status()

        try:
            return cast(dict, resp.json())
        except ValueError:
            # the API doesn't promise a body for accepted submissions
            return {}


def _error_message(response_data: Any) -> str:
    if isinstance(response_data, dict):
        if response_data.get("errors"):
            return "; ".join(str(error) for error in response_data["errors"])
        if "message" in response_data:
            return str(response_data["message"])
    return "(no message in response)"


class DatadogAPIClient(BaseAPIClient):
    BASE_PATH = "api"

    def __init__(
        self,
        *,
        api_key: str,
        api_host: str = DEFAULT_API_HOST,
        curlify_requests: bool = False,
        timeout: Optional[float] = None,
        version: str = "v1",
    ):
        self._api_key = api_key
        self._api_host = api_host.rstrip("/")
        self._version = version
        super().__init__(curlify_requests, timeout)

    def _init_session(self) -> None:
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": f"ddforwarder/{__version__}"})

    def _get_query_params(self) -> List[Tuple[str, str]]:
        return [("api_key", self._api_key)]

    def get_base_url(self) -> str:
        return "{}/{}/{}".format(self._api_host, self.BASE_PATH, self._version)

    @property
    def is_encrypted(self) -> bool:
        return urlparse(self._api_host).scheme != "http"

    def post(self, path: str, data: Any = None) -> Dict:
        if not self.is_encrypted:
            logger.warning("Warning! You are about to send unencrypted metrics.", api_host=self._api_host)
        return self._request_url("POST", "{}/{}".format(self.get_base_url(), path), data)

    def submit_series(self, batch: Sequence[DataPoint]) -> Dict:
        return self.post("series", bake_series_payload(batch))

    def close(self) -> None:
        self._session.close()


def bake_series_payload(batch: Sequence[DataPoint]) -> Dict[str, Any]:
    return {"series": [point.to_series() for point in batch]}
