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
iTIP (RFC5546) scheduling message processing and generation.

L{iTipBroker} compares versions of a scheduling object resource to work out
which messages an organizer or attendee change implies, and applies
incoming messages to a recipient's copy of the event.
"""

import datetime
from hashlib import md5

import dateutil.tz
from twisted.logger import Logger
from zope.interface import implementer

from txschedule.ical import Component, Property, iCalendarProductID
from txschedule.icalendarstore import IScheduleBroker
from txschedule.scheduling.utils import normalizeCUAddr

log = Logger()

__all__ = [
    "iTIPRequestStatus",
    "iTipMessage",
    "iTipBroker",
]


class iTIPRequestStatus(object):
    """
    String constants for various iTIP status codes we use.
    """

    MESSAGE_DELIVERED_CODE = "1.2"

    SUCCESS_CODE = "2.0"

    INVALID_CALENDAR_USER_CODE = "3.7"
    NO_AUTHORITY_CODE = "3.8"

    BAD_REQUEST_CODE = "5.0"
    SERVICE_UNAVAILABLE_CODE = "5.1"
    INVALID_SERVICE_CODE = "5.2"

    MESSAGE_DELIVERED = MESSAGE_DELIVERED_CODE + ";Message delivered locally"

    SUCCESS = SUCCESS_CODE + ";Success"

    INVALID_CALENDAR_USER = INVALID_CALENDAR_USER_CODE + ";Could not find principal"
    NO_AUTHORITY = NO_AUTHORITY_CODE + ";No authority"

    BAD_REQUEST = BAD_REQUEST_CODE + ";iTip message was not processed by the server, likely because we didn't understand it."
    SERVICE_UNAVAILABLE = SERVICE_UNAVAILABLE_CODE + ";Service unavailable"
    INVALID_SERVICE = INVALID_SERVICE_CODE + ";Invalid calendar service"
    NO_DELIVERY_SERVICE = INVALID_SERVICE_CODE + ";There was no system capable of delivering the scheduling message"

    @staticmethod
    def code(status):
        """
        Extract the numeric code from a request status string.
        """
        return status.split(";", 1)[0].strip() if status else None



class iTipMessage(object):
    """
    One scheduling message from a sender to a single recipient.

    @ivar scheduleStatus: the outcome of delivery, an L{iTIPRequestStatus}
        string, or C{None} until the message has been dispatched.
    """

    def __init__(self, uid, component, method, sender, recipient, message, sequence=0, significantChange=True):
        self.uid = uid
        self.component = component
        self.method = method
        self.sender = sender
        self.recipient = recipient
        self.message = message
        self.sequence = sequence
        self.significantChange = significantChange
        self.scheduleStatus = None


    def __repr__(self):
        return "<%s %s %s: %s -> %s (%s)>" % (
            self.__class__.__name__,
            self.method,
            self.uid,
            self.sender,
            self.recipient,
            self.scheduleStatus,
        )



@implementer(IScheduleBroker)
class iTipBroker(object):
    """
    Generates iTIP messages from changes to scheduling object resources and
    processes iTIP messages into a recipient's calendar data.
    """

    supportedComponents = ("VEVENT", "VTODO",)

    # Properties and parameters that do not make a change significant
    ignoredProperties = ("DTSTAMP", "SEQUENCE", "LAST-MODIFIED", "CREATED",)
    ignoredParameters = ("PARTSTAT", "RSVP", "SCHEDULE-STATUS", "SCHEDULE-FORCE-SEND",)

    # Parameters that are never sent in scheduling messages
    privateParameters = ("SCHEDULE-STATUS", "SCHEDULE-FORCE-SEND",)

    def parseEvent(self, calendar, userAddresses, oldCalendar=None):
        baseCalendar = calendar if calendar is not None else oldCalendar
        if baseCalendar is None:
            return []

        if baseCalendar.mainType() not in self.supportedComponents:
            return []

        organizer = baseCalendar.getOrganizer()
        if organizer is None:
            return []

        userAddresses = [normalizeCUAddr(address) for address in (userAddresses or ())]
        if not userAddresses:
            return []

        if normalizeCUAddr(organizer) in userAddresses:
            return self.parseEventForOrganizer(calendar, oldCalendar, organizer, userAddresses)

        for attendee in baseCalendar.getAttendees():
            if normalizeCUAddr(attendee) in userAddresses:
                return self.parseEventForAttendee(calendar, oldCalendar, organizer, attendee)

        return []


    def parseEventForOrganizer(self, calendar, oldCalendar, organizer, userAddresses):
        """
        Generate REQUESTs for the current attendees and CANCELs for the
        attendees that were removed.
        """

        def attendeesOf(cal):
            if cal is None:
                return []
            return [
                attendee for attendee in cal.getAttendees()
                if normalizeCUAddr(attendee) not in userAddresses
            ]

        newAttendees = attendeesOf(calendar)
        oldAttendees = attendeesOf(oldCalendar)
        newSet = set([normalizeCUAddr(attendee) for attendee in newAttendees])
        oldSet = set([normalizeCUAddr(attendee) for attendee in oldAttendees])

        messages = []
        for attendee in oldAttendees:
            if normalizeCUAddr(attendee) not in newSet:
                messages.append(self._message(
                    oldCalendar, "CANCEL", organizer, attendee,
                    self.generateCancel(oldCalendar, attendee),
                ))

        if calendar is not None:
            significant = (
                oldCalendar is None or
                self.significantChangeHash(calendar) != self.significantChangeHash(oldCalendar)
            )
            for attendee in newAttendees:
                if not significant and normalizeCUAddr(attendee) in oldSet:
                    continue
                messages.append(self._message(
                    calendar, "REQUEST", organizer, attendee,
                    self.generateRequest(calendar),
                    significantChange=significant,
                ))

        return messages


    def parseEventForAttendee(self, calendar, oldCalendar, organizer, attendee):
        """
        Generate a REPLY when the attendee's participation status changed,
        or a DECLINED REPLY when the attendee removed their copy.
        """
        if calendar is None:
            return [self._message(
                oldCalendar, "REPLY", attendee, organizer,
                self.generateReply(oldCalendar, attendee, partstat="DECLINED"),
            )]

        newPartstat = self.partstatFor(calendar, attendee)
        oldPartstat = self.partstatFor(oldCalendar, attendee) if oldCalendar is not None else "NEEDS-ACTION"
        if newPartstat == oldPartstat:
            return []

        return [self._message(
            calendar, "REPLY", attendee, organizer,
            self.generateReply(calendar, attendee),
        )]


    def processMessage(self, message, existing=None):
        if message.method == "REQUEST":
            return self.processMessageRequest(message, existing)
        elif message.method == "CANCEL":
            return self.processMessageCancel(message, existing)
        elif message.method == "REPLY":
            return self.processMessageReply(message, existing)

        log.info("Cannot process iTIP method {method} for {uid}", method=message.method, uid=message.uid)
        return None


    def processMessageRequest(self, message, existing):
        calendar = message.message.duplicate()
        calendar.removeProperty("METHOD")

        if existing is not None:
            existingSequence = existing.sequence()
            if message.sequence < existingSequence:
                log.info(
                    "Ignoring out of date REQUEST for {uid}: sequence {seq} < {current}",
                    uid=message.uid, seq=message.sequence, current=existingSequence,
                )
                return existing.duplicate()

            # Same revision: the recipient's own reply still stands
            if message.sequence == existingSequence:
                partstat = self.partstatFor(existing, message.recipient)
                calendar.setParameterToValueForPropertyWithValue(
                    "PARTSTAT", partstat, "ATTENDEE", message.recipient,
                )

        return calendar


    def processMessageCancel(self, message, existing):
        if existing is None:
            # Nothing to cancel
            return None

        calendar = existing.duplicate()
        for component in calendar.schedulingComponents():
            component.replaceProperty(Property("STATUS", "CANCELLED"))
            component.replaceProperty(Property("SEQUENCE", message.sequence))
        return calendar


    def processMessageReply(self, message, existing):
        if existing is None:
            # A reply to an event we do not have
            return None

        calendar = existing.duplicate()
        components = dict([
            (self._recurrenceKey(component), component)
            for component in calendar.schedulingComponents()
        ])

        for replyComponent in message.message.schedulingComponents():
            reply = replyComponent.getAttendeeProperty((message.sender,))
            if reply is None:
                continue
            component = components.get(self._recurrenceKey(replyComponent))
            if component is None:
                log.debug(
                    "Ignoring reply for unknown instance {rid} of {uid}",
                    rid=self._recurrenceKey(replyComponent), uid=message.uid,
                )
                continue

            partstat = reply.parameterValue("PARTSTAT", "NEEDS-ACTION")
            attendee = component.getAttendeeProperty((message.sender,))
            if attendee is None:
                attendee = reply.duplicate()
                for param in self.privateParameters:
                    attendee.removeParameter(param)
                component.addProperty(attendee)
            attendee.setParameter("PARTSTAT", partstat)
            attendee.removeParameter("SCHEDULE-FORCE-SEND")

        return calendar


    def generateRequest(self, calendar):
        """
        Copy the organizer's calendar data as a METHOD:REQUEST message.
        """
        itip = calendar.duplicate()
        itip.replaceProperty(Property("PRODID", iCalendarProductID))
        itip.replaceProperty(Property("METHOD", "REQUEST"))
        for component in itip.schedulingComponents():
            for alarm in [c for c in component.subcomponents() if c.name() == "VALARM"]:
                component.removeComponent(alarm)
        self.prepareSchedulingMessage(itip)
        return itip


    def generateCancel(self, original, attendee):
        """
        Build a METHOD:CANCEL message for one attendee removed from the
        original calendar data.
        """
        itip = self._newMessage("CANCEL")
        for instance in original.schedulingComponents():
            attendeeProp = instance.getAttendeeProperty((attendee,))
            if attendeeProp is None:
                continue

            comp = Component(instance.name())
            comp.addProperty(Property("DTSTAMP", self._now()))
            comp.addProperty(Property("UID", instance.propertyValue("UID")))
            seq = instance.propertyValue("SEQUENCE")
            comp.addProperty(Property("SEQUENCE", int(seq) + 1 if seq else 1))
            comp.addProperty(Property("STATUS", "CANCELLED"))
            self._copyProperties(instance, comp, ("ORGANIZER", "RECURRENCE-ID", "SUMMARY", "DTSTART", "DTEND", "DURATION",))
            comp.addProperty(attendeeProp.duplicate())
            itip.addComponent(comp)

        self._addTimezones(original, itip)
        self.prepareSchedulingMessage(itip)
        return itip


    def generateReply(self, calendar, attendee, partstat=None):
        """
        Build a METHOD:REPLY message carrying only the replying attendee.
        """
        itip = self._newMessage("REPLY")
        for instance in calendar.schedulingComponents():
            attendeeProp = instance.getAttendeeProperty((attendee,))
            if attendeeProp is None:
                continue

            comp = Component(instance.name())
            comp.addProperty(Property("DTSTAMP", self._now()))
            self._copyProperties(instance, comp, ("UID", "SEQUENCE", "RECURRENCE-ID", "ORGANIZER", "SUMMARY", "DTSTART", "DTEND", "DURATION",))
            attendeeProp = attendeeProp.duplicate()
            if partstat is not None:
                attendeeProp.setParameter("PARTSTAT", partstat)
            comp.addProperty(attendeeProp)
            itip.addComponent(comp)

        self._addTimezones(calendar, itip)
        self.prepareSchedulingMessage(itip)
        return itip


    def prepareSchedulingMessage(self, itip):
        """
        Remove properties and parameters that should not be sent in an iTIP
        message.
        """
        itip.removePropertyParameters("ORGANIZER", self.privateParameters)
        itip.removePropertyParameters("ATTENDEE", self.privateParameters)


    def significantChangeHash(self, calendar):
        """
        Hash the parts of the calendar data that attendees care about.
        """
        lines = []
        for component in calendar.schedulingComponents():
            lines.append("BEGIN:%s" % (component.name(),))
            for prop in sorted(component.properties(), key=lambda p: (p.name(), p.strvalue(),)):
                if prop.name() in self.ignoredProperties:
                    continue
                params = sorted([
                    "%s=%s" % (name, prop.parameterValue(name),)
                    for name in prop.parameterNames()
                    if name not in self.ignoredParameters
                ])
                lines.append("%s;%s:%s" % (prop.name(), ";".join(params), prop.strvalue(),))
        return md5("\n".join(lines).encode("utf-8")).hexdigest()


    def partstatFor(self, calendar, attendee):
        prop = calendar.getAttendeeProperty((attendee,))
        if prop is None:
            return "NEEDS-ACTION"
        return prop.parameterValue("PARTSTAT", "NEEDS-ACTION")


    def _message(self, calendar, method, sender, recipient, itip, significantChange=True):
        return iTipMessage(
            uid=calendar.resourceUID(),
            component=calendar.mainType(),
            method=method,
            sender=sender,
            recipient=recipient,
            message=itip,
            sequence=itip.sequence(),
            significantChange=significantChange,
        )


    def _newMessage(self, method):
        itip = Component.newCalendar()
        itip.addProperty(Property("METHOD", method))
        return itip


    def _copyProperties(self, source, destination, names):
        for name in names:
            for prop in source.properties(name):
                destination.addProperty(prop.duplicate())


    def _addTimezones(self, original, itip):
        for component in original.subcomponents():
            if component.name() == "VTIMEZONE":
                itip.addComponent(component.duplicate())


    def _recurrenceKey(self, component):
        rid = component.getProperty("RECURRENCE-ID")
        return rid.strvalue() if rid is not None else None


    def _now(self):
        return datetime.datetime.now(dateutil.tz.UTC).replace(microsecond=0)
