# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request utilities for extracting and processing request data.
"""

from flask import request
from typing import Any, Dict, List, Optional, Type, TypeVar
from pydantic import BaseModel
from werkzeug.exceptions import BadRequest
import logging

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

USER_HEADER = 'X-User-Id'


class RequestParser:
    """Utility for parsing and extracting request data."""

    @staticmethod
    def get_actor() -> Optional[str]:
        """User id set by the upstream gateway, None for anonymous calls."""
        value = request.headers.get(USER_HEADER, '').strip()
        return value or None

    @staticmethod
    def parse_json_body(required: bool = True) -> Dict[str, Any]:
        """
        Parse JSON request body.

        Raises:
            BadRequest: If the body is required but missing or not a JSON object
        """
        data = request.get_json(silent=True)
        if data is None:
            if required and request.get_data():
                raise BadRequest("Request body is not valid JSON")
            if required:
                raise BadRequest("Request body must be a JSON object")
            return {}
        if not isinstance(data, dict):
            raise BadRequest("Request body must be a JSON object")
        return data

    @staticmethod
    def parse_model(model: Type[ModelT], required: bool = True) -> ModelT:
        """
        Validate the JSON body against a request model.

        A ``pydantic.ValidationError`` propagates to the error handler.
        """
        return model.model_validate(RequestParser.parse_json_body(required))

    @staticmethod
    def get_bool_arg(name: str, default: Optional[bool] = None) -> Optional[bool]:
        value = request.args.get(name)
        if value is None:
            return default
        return value.lower() in ['true', '1', 'yes', 'on']

    @staticmethod
    def require_arg(name: str) -> str:
        value = request.args.get(name, '').strip()
        if not value:
            raise BadRequest(f"Query parameter '{name}' is required")
        return value


class ResponseBuilder:
    """Utility for building consistent API responses."""

    @staticmethod
    def resource(entity: BaseModel) -> Dict[str, Any]:
        """Entity as camelCase JSON."""
        return entity.model_dump(by_alias=True, mode="json")

    @staticmethod
    def collection(items: List[BaseModel], **additional_data: Any) -> Dict[str, Any]:
        response: Dict[str, Any] = {
            'items': [ResponseBuilder.resource(item) for item in items],
            'total': len(items)
        }
        response.update(additional_data)
        return response
