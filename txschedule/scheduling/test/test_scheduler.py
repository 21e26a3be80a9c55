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

import datetime
from xml.etree import ElementTree

import dateutil.tz
from twisted.internet.defer import inlineCallbacks, succeed
from twisted.trial import unittest
from twisted.web import http as responsecode

from txschedule import caldavxml
from txschedule.config import config
from txschedule.http import HTTPError
from txschedule.memorystore import MemoryPrivilegeChecker
from txschedule.scheduling.freebusy import FreeBusyResult
from txschedule.scheduling.scheduler import OutboxScheduler, ScheduleResponseQueue
from txschedule.test.util import SchedulingTestCase, icalendar

OUTBOX = "/calendars/__uids__/user01/outbox"
OWNER = ["mailto:user01@example.com"]


def request(organizer="ORGANIZER:mailto:user01@example.com", attendees=None, times=None, method="METHOD:REQUEST", component="VFREEBUSY"):
    if attendees is None:
        attendees = ["mailto:user01@example.com", "mailto:userc@example.com"]
    if times is None:
        times = "DTSTART:20170101T000000Z\nDTEND:20170102T000000Z"
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//CALENDARSERVER.ORG//NONSGML Version 1//EN"]
    if method:
        lines.append(method)
    lines.extend(["BEGIN:%s" % (component,), "UID:fb-request-1", "DTSTAMP:20161201T000000Z"])
    if times:
        lines.append(times)
    if organizer:
        lines.append(organizer)
    lines.extend(["ATTENDEE:%s" % (attendee,) for attendee in attendees])
    lines.extend(["END:%s" % (component,), "END:VCALENDAR", ""])
    return icalendar("\n".join(lines))



class StubFreebusyQuery(object):

    def __init__(self):
        self.attendees = []


    def computeFreeBusy(self, attendee, timerange, request):
        self.attendees.append(attendee)
        self.timerange = timerange
        return succeed(FreeBusyResult(attendee, "2.0;Success", None))



class OutboxSchedulerValidationTests(unittest.TestCase):
    """
    Rejection of bad outbox POSTs.
    """

    def setUp(self):
        self.privileges = MemoryPrivilegeChecker()
        self.freebusy = StubFreebusyQuery()
        self.scheduler = OutboxScheduler(self.privileges, self.freebusy)


    @inlineCallbacks
    def assertRejected(self, data, code, error=None, contentType=None):
        failure = yield self.assertFailure(
            self.scheduler.doSchedulingViaPOST(OUTBOX, OWNER, data, contentType),
            HTTPError,
        )
        self.assertEqual(failure.code, code)
        if error is not None:
            self.assertEqual(failure.response.error, error)
        self.assertEqual(self.freebusy.attendees, [])


    def test_contentType(self):
        return self.assertRejected(
            request(), responsecode.UNSUPPORTED_MEDIA_TYPE,
            (caldavxml.caldav_namespace, "supported-calendar-data"),
            contentType="text/plain",
        )


    @inlineCallbacks
    def test_contentTypeParameters(self):
        responses = yield self.scheduler.doSchedulingViaPOST(OUTBOX, OWNER, request(), "Text/Calendar; charset=utf-8")
        self.assertEqual(len(responses), 2)


    def test_invalidData(self):
        return self.assertRejected(
            "this is not iCalendar data", responsecode.BAD_REQUEST,
            (caldavxml.caldav_namespace, "valid-calendar-data"),
        )


    def test_noMethod(self):
        return self.assertRejected(
            request(method=None), responsecode.BAD_REQUEST,
            (caldavxml.caldav_namespace, "valid-scheduling-message"),
        )


    def test_notFreeBusy(self):
        return self.assertRejected(request(component="VEVENT"), responsecode.NOT_IMPLEMENTED)


    def test_notRequest(self):
        return self.assertRejected(request(method="METHOD:REPLY"), responsecode.NOT_IMPLEMENTED)


    @inlineCallbacks
    def test_privilege(self):
        self.privileges.deny(OUTBOX, caldavxml.ScheduleQueryFreeBusy)
        yield self.assertRejected(
            request(), responsecode.FORBIDDEN,
            (caldavxml.dav_namespace, "need-privileges"),
        )
        self.assertEqual(self.privileges.checks, [(OUTBOX, caldavxml.ScheduleQueryFreeBusy, "resource")])


    def test_organizerNotOwner(self):
        return self.assertRejected(
            request(organizer="ORGANIZER:mailto:user02@example.com"), responsecode.FORBIDDEN,
            (caldavxml.caldav_namespace, "organizer-allowed"),
        )


    def test_noOrganizer(self):
        return self.assertRejected(
            request(organizer=None), responsecode.FORBIDDEN,
            (caldavxml.caldav_namespace, "organizer-allowed"),
        )


    def test_noAttendees(self):
        return self.assertRejected(
            request(attendees=[]), responsecode.BAD_REQUEST,
            (caldavxml.caldav_namespace, "valid-calendar-data"),
        )


    def test_noEnd(self):
        return self.assertRejected(
            request(times="DTSTART:20170101T000000Z"), responsecode.BAD_REQUEST,
            (caldavxml.caldav_namespace, "valid-calendar-data"),
        )


    def test_noStart(self):
        return self.assertRejected(
            request(times="DTEND:20170102T000000Z"), responsecode.BAD_REQUEST,
            (caldavxml.caldav_namespace, "valid-calendar-data"),
        )


    def test_twoFreeBusy(self):
        data = request().replace("END:VCALENDAR", "BEGIN:VFREEBUSY\r\nUID:fb-request-2\r\nEND:VFREEBUSY\r\nEND:VCALENDAR")
        return self.assertRejected(data, responsecode.BAD_REQUEST)



class OutboxSchedulerTests(unittest.TestCase):
    """
    Per-attendee results of a free busy request.
    """

    def setUp(self):
        self.freebusy = StubFreebusyQuery()
        self.scheduler = OutboxScheduler(MemoryPrivilegeChecker(), self.freebusy)


    @inlineCallbacks
    def test_order(self):
        attendees = ["mailto:user%02d@example.com" % (i,) for i in (3, 1, 2)]
        responses = yield self.scheduler.doSchedulingViaPOST(OUTBOX, OWNER, request(attendees=attendees))
        self.assertEqual([details.recipient for details in responses], attendees)
        self.assertEqual(self.freebusy.attendees, attendees)


    @inlineCallbacks
    def test_duplicateAttendees(self):
        attendees = ["mailto:user02@example.com", "mailto:user03@example.com", "mailto:user02@example.com"]
        responses = yield self.scheduler.doSchedulingViaPOST(OUTBOX, OWNER, request(attendees=attendees))
        self.assertEqual([details.recipient for details in responses], attendees)
        self.assertEqual(self.freebusy.attendees, attendees)


    @inlineCallbacks
    def test_organizerCaseInsensitive(self):
        responses = yield self.scheduler.doSchedulingViaPOST(
            OUTBOX, OWNER, request(organizer="ORGANIZER:MAILTO:User01@Example.com"),
        )
        self.assertEqual(len(responses), 2)


    @inlineCallbacks
    def test_timerange(self):
        yield self.scheduler.doSchedulingViaPOST(
            OUTBOX, OWNER, request(times="DTSTART:20170101T000000Z\nDTEND:20170101T120000Z"),
        )
        self.assertEqual(self.freebusy.timerange.start.hour, 0)
        self.assertEqual(self.freebusy.timerange.end.hour, 12)


    @inlineCallbacks
    def test_limit(self):
        self.patch(config.Scheduling.Options, "LimitFreeBusyAttendees", 2)
        attendees = ["mailto:user%02d@example.com" % (i,) for i in (1, 2, 3)]
        responses = yield self.scheduler.doSchedulingViaPOST(OUTBOX, OWNER, request(attendees=attendees))
        self.assertEqual(
            [(details.recipient, details.reqstatus) for details in responses],
            [
                ("mailto:user01@example.com", "2.0;Success"),
                ("mailto:user02@example.com", "2.0;Success"),
                ("mailto:user03@example.com", "5.1;Service unavailable"),
            ],
        )
        self.assertEqual(self.freebusy.attendees, attendees[:2])



class ScheduleResponseQueueTests(unittest.TestCase):

    def test_toxml(self):
        queue = ScheduleResponseQueue("POST")
        queue.add("mailto:user01@example.com", "2.0;Success", "BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n")
        queue.add("mailto:user02@example.com", "3.7;Could not find principal")
        self.assertEqual(len(queue), 2)

        root = ElementTree.fromstring(queue.toxml())
        self.assertEqual(root.tag, caldavxml.qname(caldavxml.caldav_namespace, "schedule-response"))
        responses = root.findall(caldavxml.qname(caldavxml.caldav_namespace, "response"))
        self.assertEqual(len(responses), 2)

        hrefs = [
            response.find(caldavxml.qname(caldavxml.caldav_namespace, "recipient")).find(caldavxml.qname(caldavxml.dav_namespace, "href")).text
            for response in responses
        ]
        self.assertEqual(hrefs, ["mailto:user01@example.com", "mailto:user02@example.com"])

        statuses = [
            response.find(caldavxml.qname(caldavxml.caldav_namespace, "request-status")).text
            for response in responses
        ]
        self.assertEqual(statuses, ["2.0;Success", "3.7;Could not find principal"])

        calendarData = caldavxml.qname(caldavxml.caldav_namespace, "calendar-data")
        self.assertEqual(responses[0].find(calendarData).text, "BEGIN:VCALENDAR\nEND:VCALENDAR\n")
        self.assertEqual(responses[1].find(calendarData), None)



class OutboxFreeBusyTests(SchedulingTestCase):
    """
    A free busy request answered from calendar data.
    """

    @inlineCallbacks
    def test_request(self):
        self.provisionUser("user01")
        userc = self.provisionUser("userc")
        self.storeEntry(userc, icalendar("""BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//CALENDARSERVER.ORG//NONSGML Version 1//EN
BEGIN:VEVENT
UID:event-c
DTSTAMP:20161201T000000Z
DTSTART:20170101T100000Z
DTEND:20170101T110000Z
END:VEVENT
END:VCALENDAR
"""))

        responses = yield self.scheduling.outbox.doSchedulingViaPOST(
            OUTBOX, OWNER, request(attendees=["mailto:userc@example.com", "mailto:nobody@example.com"]),
        )
        responses = list(responses)
        self.assertEqual(responses[0].reqstatus, "2.0;Success")
        vfreebusy = responses[0].calendar.mainComponent()
        self.assertEqual(
            [prop.value() for prop in vfreebusy.properties("FREEBUSY")],
            [(datetime.datetime(2017, 1, 1, 10, tzinfo=dateutil.tz.UTC), datetime.datetime(2017, 1, 1, 11, tzinfo=dateutil.tz.UTC),)],
        )
        self.assertEqual(responses[1].reqstatus, "3.7;Could not find principal")
        self.assertEqual(responses[1].calendar, None)
