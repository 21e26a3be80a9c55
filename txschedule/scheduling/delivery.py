##
# Copyright (c) 2005-2017 Apple Inc. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
##

import re

from twisted.internet.defer import inlineCallbacks, maybeDeferred
from twisted.logger import Logger, LogLevel
from zope.interface import implementer

from txschedule.config import config
from txschedule.icalendarstore import IDeliveryService
from txschedule.scheduling.itip import iTIPRequestStatus

__all__ = [
    "DeliveryService",
    "ScheduleDispatcher",
]

log = Logger()


@implementer(IDeliveryService)
class DeliveryService(object):
    """
    Abstract base class that defines a delivery method for a scheduling message.
    """

    # Known types

    serviceType_caldav = "CalDAV"

    @classmethod
    def serviceType(cls):
        raise NotImplementedError


    @classmethod
    def matchCalendarUserAddress(cls, cuaddr):
        """
        Determine whether the delivery service is able to handle the specified
        calendar user address. A service with no configured patterns handles
        every address.

        @param cuaddr: calendar user address to test
        @type cuaddr: C{str}

        @return: C{True} or C{False}
        """

        patterns = config.Scheduling[cls.serviceType()].AddressPatterns
        if not patterns:
            return True

        cuaddr = cuaddr.lower()
        for pattern in patterns:
            try:
                if re.match(pattern, cuaddr) is not None:
                    return True
            except re.error:
                log.error(
                    "Invalid regular expression for Scheduling configuration '{service}/AddressPatterns': {pattern}",
                    service=cls.serviceType(), pattern=pattern,
                )

        return False


    def deliver(self, message):
        raise NotImplementedError



class ScheduleDispatcher(object):
    """
    Hands each scheduling message to the first delivery service that
    produces a status for it.  A service that raises ends dispatch for that
    message with a C{5.2} status; later services are not tried.

    @ivar services: the ordered L{IDeliveryService} providers to try.
    """

    def __init__(self, services=()):
        self.services = list(services)


    def addService(self, service):
        self.services.append(service)


    @inlineCallbacks
    def dispatch(self, message):
        """
        Deliver C{message} and record the outcome on its C{scheduleStatus}.

        @return: a L{Deferred} firing with the status.
        """
        message.scheduleStatus = iTIPRequestStatus.NO_DELIVERY_SERVICE

        for service in self.services:
            try:
                status = yield maybeDeferred(service.deliver, message)
            except Exception:
                log.failure(
                    "Delivery of {method} for {uid} to {recipient} failed",
                    method=message.method, uid=message.uid, recipient=message.recipient,
                    level=LogLevel.debug,
                )
                log.error(
                    "Delivery service {service} failed for {recipient}",
                    service=service.__class__.__name__, recipient=message.recipient,
                )
                message.scheduleStatus = iTIPRequestStatus.INVALID_SERVICE
                break

            if status:
                message.scheduleStatus = status
                break

        log.debug("Dispatched {message}", message=message)
        return message.scheduleStatus
