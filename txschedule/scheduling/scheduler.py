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
Outbox POST handling: validation of the scheduling request and the
schedule-response built from each recipient's outcome.
"""

from collections import namedtuple

from twisted.internet.defer import inlineCallbacks, maybeDeferred
from twisted.logger import Logger
from twisted.web import http as responsecode

from txschedule import caldavxml
from txschedule.config import config
from txschedule.dateops import Period, normalizeToUTC
from txschedule.http import ErrorResponse, HTTPError
from txschedule.ical import Component, InvalidICalendarDataError
from txschedule.scheduling.itip import iTIPRequestStatus
from txschedule.scheduling.utils import normalizeCUAddr

__all__ = [
    "OutboxScheduler",
    "ScheduleResponseQueue",
]

log = Logger()


class OutboxScheduler(object):
    """
    Handles a POST of iCalendar data to a schedule outbox. Only VFREEBUSY
    REQUESTs are supported.
    """

    def __init__(self, privileges, freebusy):
        """
        @param privileges: the L{IPrivilegeChecker} for the outbox.
        @param freebusy: the L{FreebusyQuery} run for each attendee.
        """
        self.privileges = privileges
        self.freebusy = freebusy


    @inlineCallbacks
    def doSchedulingViaPOST(self, outboxPath, ownerAddresses, data, contentType=None):
        """
        @param outboxPath: the path of the outbox being POSTed to.
        @param ownerAddresses: the calendar user addresses of the outbox owner.
        @param data: the request body.
        @param contentType: the request content type, if known.
        @return: a L{Deferred} firing with a L{ScheduleResponseQueue}.
        @raise HTTPError: if the request is rejected.
        """
        self.checkContentType(contentType)
        calendar = self.parseCalendar(data)

        # The component type and the METHOD together determine the request type
        componentType = calendar.mainType()
        if componentType is None:
            raise HTTPError(ErrorResponse(
                responsecode.BAD_REQUEST,
                (caldavxml.caldav_namespace, "valid-calendar-data"),
                "We expected at least one VTODO, VJOURNAL, VFREEBUSY or VEVENT component",
            ))

        method = calendar.propertyValue("METHOD")
        method = method.upper() if method else None
        if not method:
            raise HTTPError(ErrorResponse(
                responsecode.BAD_REQUEST,
                (caldavxml.caldav_namespace, "valid-scheduling-message"),
                "A METHOD property must be specified in iTIP messages",
            ))

        log.info(
            "POST to {path}: {method} {component}",
            path=outboxPath, method=method, component=componentType,
        )

        if componentType == "VFREEBUSY" and method == "REQUEST":
            allowed = yield maybeDeferred(
                self.privileges.checkPrivilege,
                outboxPath, caldavxml.ScheduleQueryFreeBusy, "resource",
            )
            if not allowed:
                raise HTTPError(ErrorResponse(
                    responsecode.FORBIDDEN,
                    (caldavxml.dav_namespace, "need-privileges"),
                    "No schedule-query-freebusy privilege on the outbox",
                ))
            responses = yield self.handleFreeBusyRequest(calendar, ownerAddresses)
            return responses

        raise HTTPError(ErrorResponse(
            responsecode.NOT_IMPLEMENTED,
            None,
            "We only support VFREEBUSY (REQUEST) on this endpoint",
        ))


    def checkContentType(self, contentType):
        if contentType is None:
            return
        mimeType = contentType.split(";", 1)[0].strip().lower()
        if mimeType != "text/calendar":
            log.error("MIME type {mime} not allowed in calendar collection", mime=mimeType)
            raise HTTPError(ErrorResponse(
                responsecode.UNSUPPORTED_MEDIA_TYPE,
                (caldavxml.caldav_namespace, "supported-calendar-data"),
                "Invalid MIME type for calendar collection",
            ))


    def parseCalendar(self, data):
        try:
            return Component.fromString(data)
        except InvalidICalendarDataError as e:
            log.error("Error while handling POST: {error}", error=e)
            raise HTTPError(ErrorResponse(
                responsecode.BAD_REQUEST,
                (caldavxml.caldav_namespace, "valid-calendar-data"),
                "The request body must be a valid iCalendar object. Parse error: %s" % (e,),
            ))


    @inlineCallbacks
    def handleFreeBusyRequest(self, calendar, ownerAddresses):
        """
        Check the VFREEBUSY request and query each attendee in turn.
        """
        vfreebusies = [c for c in calendar.subcomponents() if c.name() == "VFREEBUSY"]
        if len(vfreebusies) != 1:
            raise HTTPError(ErrorResponse(
                responsecode.BAD_REQUEST,
                (caldavxml.caldav_namespace, "valid-calendar-data"),
                "Only one VFREEBUSY component is allowed",
            ))
        vfreebusy = vfreebusies[0]

        # The organizer must be the owner of the outbox
        organizer = vfreebusy.getOrganizer()
        ownerAddresses = [normalizeCUAddr(address) for address in ownerAddresses]
        if organizer is None or normalizeCUAddr(organizer) not in ownerAddresses:
            log.error("ORGANIZER in calendar data is not valid: {organizer}", organizer=organizer)
            raise HTTPError(ErrorResponse(
                responsecode.FORBIDDEN,
                (caldavxml.caldav_namespace, "organizer-allowed"),
                "The organizer in the request did not match any of the addresses for the owner of this outbox",
            ))

        # One response per ATTENDEE, duplicates included
        attendees = [prop.value() for prop in vfreebusy.properties("ATTENDEE")]
        if not attendees:
            raise HTTPError(ErrorResponse(
                responsecode.BAD_REQUEST,
                (caldavxml.caldav_namespace, "valid-calendar-data"),
                "You must at least specify 1 attendee",
            ))

        dtstart = vfreebusy.propertyValue("DTSTART")
        dtend = vfreebusy.propertyValue("DTEND")
        if dtstart is None or dtend is None:
            raise HTTPError(ErrorResponse(
                responsecode.BAD_REQUEST,
                (caldavxml.caldav_namespace, "valid-calendar-data"),
                "DTSTART and DTEND must both be specified",
            ))
        timerange = Period(normalizeToUTC(dtstart), normalizeToUTC(dtend))

        responses = ScheduleResponseQueue("POST")
        limit = config.Scheduling.Options.LimitFreeBusyAttendees
        for ctr, attendee in enumerate(attendees):
            if limit and ctr >= limit:
                responses.add(attendee, iTIPRequestStatus.SERVICE_UNAVAILABLE)
                continue
            result = yield self.freebusy.computeFreeBusy(attendee, timerange, calendar)
            responses.add(result.recipient, result.reqstatus, result.calendar)

        return responses



class ScheduleResponseQueue (object):
    """
    Stores a list of recipient responses for use in a schedule-response.
    """

    ScheduleResponseDetails = namedtuple(
        "ScheduleResponseDetails",
        ["recipient", "reqstatus", "calendar", ]
    )

    def __init__(self, method):
        """
        @param method: the name of the method generating the queue.
        """
        self.responses = []
        self.method = method


    def __len__(self):
        return len(self.responses)


    def __iter__(self):
        return iter(self.responses)


    def add(self, recipient, reqstatus, calendar=None):
        """
        Add a response.
        @param recipient: the recipient for this response.
        @param reqstatus: the iTIP request-status for the given recipient.
        @param calendar: the calendar data for the given recipient response.
        """
        if iTIPRequestStatus.code(reqstatus) != iTIPRequestStatus.SUCCESS_CODE:
            log.info(
                "{method} for {recipient}: {status}",
                method=self.method, recipient=recipient, status=reqstatus,
            )
        self.responses.append(self.ScheduleResponseDetails(recipient, reqstatus, calendar))


    def response(self):
        """
        Generate a L{caldavxml.ScheduleResponse} element from the responses
        contained in the queue.
        """
        return caldavxml.ScheduleResponse(*[
            caldavxml.Response(
                caldavxml.Recipient(details.recipient),
                caldavxml.RequestStatus(details.reqstatus),
                caldavxml.CalendarData(details.calendar) if details.calendar is not None else None,
            )
            for details in self.responses
        ])


    def toxml(self):
        return caldavxml.toxml(self.response())
