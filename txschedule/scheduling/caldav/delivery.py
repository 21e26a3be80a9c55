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

"""
Handles the delivery of scheduling messages to calendar users hosted by this
service: the message is filed in the recipient's inbox and merged into the
recipient's copy of the event.
"""

from twisted.internet.defer import inlineCallbacks, maybeDeferred
from twisted.logger import Logger

from txschedule import caldavxml
from txschedule.ical import Component
from txschedule.scheduling.cuaddress import calendarUserFromCalendarUserAddress
from txschedule.scheduling.delivery import DeliveryService
from txschedule.scheduling.itip import iTIPRequestStatus
from txschedule.scheduling.utils import resourceNameForUID, scheduleURLsForRecord

__all__ = [
    "ScheduleViaCalDAV",
]

log = Logger()


class ScheduleViaCalDAV(DeliveryService):
    """
    Local delivery of iTIP messages.

    @ivar implicit: the L{ImplicitScheduler} used to fan out the changes a
        REPLY makes to the organizer's copy.
    """

    # Collections delivery needs, with the property each represents
    requiredPaths = (
        (caldavxml.ScheduleInboxURL, "schedule-inbox-URL"),
        (caldavxml.ScheduleDefaultCalendarURL, "schedule-default-calendar-URL"),
    )

    def __init__(self, directory, tree, privileges, broker, implicit=None):
        self.directory = directory
        self.tree = tree
        self.privileges = privileges
        self.broker = broker
        self.implicit = implicit


    @classmethod
    def serviceType(cls):
        return DeliveryService.serviceType_caldav


    @inlineCallbacks
    def deliver(self, message):
        if not self.matchCalendarUserAddress(message.recipient):
            return None

        recipient = yield calendarUserFromCalendarUserAddress(message.recipient, self.directory)
        if not recipient.hosted():
            log.debug("Cannot deliver to {recipient}", recipient=recipient)
            return "%s with address: %s" % (iTIPRequestStatus.INVALID_CALENDAR_USER, message.recipient,)

        record = recipient.record
        if not record.calendarHomePath:
            log.error("No calendar-home-set for recipient {cuaddr}", cuaddr=recipient.cuaddr)
            return "%s;Could not find the calendar-home-set property on the recipient's principal" % (
                iTIPRequestStatus.INVALID_SERVICE_CODE,
            )

        urls = yield scheduleURLsForRecord(record, self.tree)
        for name, propertyName in self.requiredPaths:
            if not urls[name]:
                log.error(
                    "No {prop} for recipient {cuaddr}",
                    prop=propertyName, cuaddr=recipient.cuaddr,
                )
                return "%s;Could not find the %s property on the recipient's principal" % (
                    iTIPRequestStatus.INVALID_SERVICE_CODE, propertyName,
                )
        inboxPath = urls[caldavxml.ScheduleInboxURL]
        defaultCalendarPath = urls[caldavxml.ScheduleDefaultCalendarURL]

        # Delivery is done on behalf of the server, not the sender, so only
        # the inbox privilege is checked here
        allowed = yield maybeDeferred(
            self.privileges.checkPrivilege,
            inboxPath, caldavxml.ScheduleDeliverInvite, "parent",
        )
        if not allowed:
            log.info(
                "Recipient {cuaddr} does not grant schedule-deliver-invite on {inbox}",
                cuaddr=recipient.cuaddr, inbox=inboxPath,
            )
            return "%s;Sender does not have the schedule-deliver-invite privilege on the recipient's inbox" % (
                iTIPRequestStatus.NO_AUTHORITY_CODE,
            )

        existingPath = yield maybeDeferred(self.tree.findEntryByUID, record.calendarHomePath, message.uid)
        existing = None
        if existingPath is not None:
            data = yield maybeDeferred(self.tree.readEntry, existingPath)
            existing = Component.fromString(data)
            merged = yield maybeDeferred(self.broker.processMessage, message, existing.duplicate())
        else:
            merged = yield maybeDeferred(self.broker.processMessage, message, None)

        # The inbox always gets the message as it arrived
        yield maybeDeferred(
            self.tree.createEntry,
            inboxPath, resourceNameForUID(message.uid), str(message.message),
        )

        if merged is None:
            log.info(
                "Could not process {method} for {uid} in {home}",
                method=message.method, uid=message.uid, home=record.calendarHomePath,
            )
            return iTIPRequestStatus.BAD_REQUEST

        if existing is None:
            yield maybeDeferred(
                self.tree.createEntry,
                defaultCalendarPath, resourceNameForUID(message.uid), str(merged),
            )
        else:
            if message.method == "REPLY" and self.implicit is not None:
                merged = yield self.implicit.processChange(
                    existing, merged, [message.recipient], ignore=[message.sender],
                )
            yield maybeDeferred(self.tree.overwrite, existingPath, str(merged))

        log.debug(
            "Delivered {method} for {uid} to {cuaddr}",
            method=message.method, uid=message.uid, cuaddr=recipient.cuaddr,
        )
        return iTIPRequestStatus.MESSAGE_DELIVERED
