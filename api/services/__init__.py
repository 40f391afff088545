# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Persistence, external integrations and workflow services.
"""

from .amqp import AMQPConfig, AMQPNotificationSink, PublishResult, create_amqp_notification_sink
from .mongodb import MongoDBService, create_mongodb_service

__all__ = [
    "AMQPConfig",
    "AMQPNotificationSink",
    "PublishResult",
    "create_amqp_notification_sink",
    "MongoDBService",
    "create_mongodb_service"
]
