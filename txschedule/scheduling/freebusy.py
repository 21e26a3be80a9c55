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
Free busy: aggregation of a calendar user's busy time and the per-attendee
query behind outbox VFREEBUSY requests.
"""

from collections import namedtuple
import datetime
import uuid

import dateutil.tz
from icalendar.prop import vPeriod
from twisted.internet.defer import inlineCallbacks, maybeDeferred
from twisted.logger import Logger
from twisted.web import http as responsecode
from zope.interface import implementer

from txschedule import caldavxml
from txschedule.config import config
from txschedule.dateops import Period, clipPeriod, normalizePeriodList, normalizeToUTC, timeRangesOverlap
from txschedule.http import ErrorResponse, HTTPError
from txschedule.ical import Component, InvalidICalendarDataError, Property, iCalendarProductID
from txschedule.icalendarstore import IFreeBusyGenerator
from txschedule.instance import InstanceList
from txschedule.scheduling.itip import iTIPRequestStatus
from txschedule.scheduling.utils import emailFromCalendarUserAddress

__all__ = [
    "FBInfo",
    "FreeBusyResult",
    "FreeBusyGenerator",
    "FreebusyQuery",
]

log = Logger()

FBInfo = namedtuple("FBInfo", ("busy", "tentative", "unavailable",))

FreeBusyResult = namedtuple("FreeBusyResult", ("recipient", "reqstatus", "calendar",))


@implementer(IFreeBusyGenerator)
class FreeBusyGenerator(object):
    """
    Aggregate VEVENT and VFREEBUSY data into a single VFREEBUSY.
    """

    FBInfo_mapper = {
        "BUSY": "busy",
        "BUSY-TENTATIVE": "tentative",
        "BUSY-UNAVAILABLE": "unavailable",
    }

    FBInfo_index_mapper = {
        "busy": "BUSY",
        "tentative": "BUSY-TENTATIVE",
        "unavailable": "BUSY-UNAVAILABLE",
    }

    def generate(self, calendars, timerange, method="REPLY"):
        timerange = Period(normalizeToUTC(timerange.start), normalizeToUTC(timerange.end))
        tzinfo = dateutil.tz.gettz(config.DefaultTimezone) or dateutil.tz.UTC

        fbinfo = FBInfo([], [], [])
        for calendar in calendars:
            if not isinstance(calendar, Component):
                try:
                    calendar = Component.fromString(calendar)
                except InvalidICalendarDataError:
                    log.error("Ignoring invalid calendar data in free busy set")
                    continue

            self.processEventFreeBusy(calendar, fbinfo, timerange, tzinfo)
            self.processFreeBusyFreeBusy(calendar, fbinfo, timerange)

        return self.buildFreeBusyResult(fbinfo, timerange, method)


    def processEventFreeBusy(self, calendar, fbinfo, timerange, tzinfo):
        """
        Extract free busy data from a VEVENT component.
        @param calendar: the L{Component} that is the VCALENDAR containing the VEVENT's.
        @param fbinfo: the tuple used to store the three types of fb data.
        @param timerange: the L{Period} to report on.
        @param tzinfo: the timezone to use for floating times.
        """

        events = [c for c in calendar.subcomponents() if c.name() == "VEVENT"]
        if not events:
            return

        # Expand out the set of instances for the event with in the required range
        instances = InstanceList(ignoreInvalidInstances=True)
        instances.expandTimeRanges(events, timerange.end, lowerLimit=timerange.start)

        for key in instances:
            instance = instances[key]

            # Can only do timed events
            if not isinstance(instance.start, datetime.datetime):
                continue

            # Check TRANSP property of underlying component
            if instance.component.propertyValue("TRANSP") == "TRANSPARENT":
                continue

            # Determine status
            status = instance.component.propertyValue("STATUS") or "CONFIRMED"

            # Ignore cancelled
            if status == "CANCELLED":
                continue

            period = Period(normalizeToUTC(instance.start, tzinfo), normalizeToUTC(instance.end, tzinfo))
            clipped = clipPeriod(period, timerange)

            # Double check for overlap
            if clipped:
                if status == "TENTATIVE":
                    fbinfo.tentative.append(clipped)
                else:
                    fbinfo.busy.append(clipped)


    def processFreeBusyFreeBusy(self, calendar, fbinfo, timerange):
        """
        Extract FREEBUSY data from a VFREEBUSY component.
        @param calendar: the L{Component} that is the VCALENDAR containing the VFREEBUSY's.
        @param fbinfo: the tuple used to store the three types of fb data.
        @param timerange: the L{Period} to report on.
        """

        for vfb in [x for x in calendar.subcomponents() if x.name() == "VFREEBUSY"]:
            # First check any start/end in the actual component
            start = vfb.getStartDateUTC()
            end = vfb.getEndDateUTC()
            if start and end:
                if not timeRangesOverlap(start, end, timerange.start, timerange.end):
                    continue

            # Now look at each FREEBUSY property
            for fb in vfb.properties("FREEBUSY"):
                # Check the type
                fbtype = fb.parameterValue("FBTYPE", "BUSY").upper()
                if fbtype == "FREE":
                    continue

                for period in self._periods(fb):
                    # Clip period for this instance
                    clipped = clipPeriod(period, timerange)
                    if clipped:
                        getattr(fbinfo, self.FBInfo_mapper.get(fbtype, "busy")).append(clipped)


    def buildFreeBusyResult(self, fbinfo, timerange, method=None):
        """
        Generate a VCALENDAR object containing a single VFREEBUSY that is the
        aggregate of the free busy info passed in.

        @param fbinfo:        the array of busy periods to use.
        @param timerange:     the L{Period} reported on.
        @param method:        the METHOD property value to insert.
        @return:              the L{Component} containing the calendar data.
        """

        # Merge overlapping time ranges in each fb info section
        normalizePeriodList(fbinfo.busy)
        normalizePeriodList(fbinfo.tentative)
        normalizePeriodList(fbinfo.unavailable)

        # Now build a new calendar object with the free busy info we have
        fbcalendar = Component("VCALENDAR")
        fbcalendar.addProperty(Property("VERSION", "2.0"))
        fbcalendar.addProperty(Property("PRODID", iCalendarProductID))
        if method:
            fbcalendar.addProperty(Property("METHOD", method))
        fb = Component("VFREEBUSY")
        fbcalendar.addComponent(fb)
        fb.addProperty(Property("DTSTART", timerange.start))
        fb.addProperty(Property("DTEND", timerange.end))
        fb.addProperty(Property("DTSTAMP", datetime.datetime.now(dateutil.tz.UTC).replace(microsecond=0)))
        for index in FBInfo._fields:
            for period in getattr(fbinfo, index):
                fb.addProperty(Property(
                    "FREEBUSY", (period.start, period.end),
                    {"FBTYPE": self.FBInfo_index_mapper[index]},
                ))
        fb.addProperty(Property("UID", str(uuid.uuid4())))

        return fbcalendar


    def _periods(self, prop):
        """
        The periods of a FREEBUSY property, which may hold several.
        """
        periods = []
        for text in prop.strvalue().split(","):
            text = text.strip()
            if not text:
                continue
            try:
                start, end = vPeriod.from_ical(text)
            except ValueError:
                log.debug("Ignoring invalid FREEBUSY period: {period}", period=text)
                continue
            if isinstance(end, datetime.timedelta):
                end = start + end
            periods.append(Period(start, end))
        return periods



class FreebusyQuery(object):
    """
    Determine the free busy state of one attendee of an outbox request.

    @ivar directory: the L{IDirectoryService} used to find the attendee.
    @ivar tree: the L{ICalendarTree} holding the attendee's calendars.
    @ivar privileges: the L{IPrivilegeChecker} for read-free-busy.
    @ivar generator: the L{IFreeBusyGenerator} doing the aggregation.
    """

    def __init__(self, directory, tree, privileges, generator=None):
        self.directory = directory
        self.tree = tree
        self.privileges = privileges
        self.generator = generator if generator is not None else FreeBusyGenerator()


    @inlineCallbacks
    def computeFreeBusy(self, attendee, timerange, request):
        """
        @param attendee: the attendee's calendar user address.
        @param timerange: the L{Period} to report on.
        @param request: the VCALENDAR L{Component} of the request.
        @return: a L{Deferred} firing with a L{FreeBusyResult}.
        """
        email = emailFromCalendarUserAddress(attendee)
        href = "mailto:%s" % (email,)

        records = yield maybeDeferred(self.directory.recordsWithAttribute, "emailAddresses", email)
        if not records:
            return FreeBusyResult(href, iTIPRequestStatus.INVALID_CALENDAR_USER, None)

        homePath = records[0].calendarHomePath
        if not homePath:
            return FreeBusyResult(href, "%s;No calendar-home-set property found" % (iTIPRequestStatus.INVALID_CALENDAR_USER_CODE,), None)

        objects = []
        children = yield maybeDeferred(self.tree.listChildren, homePath)
        for calendar in children:
            if not calendar.isCalendar():
                continue

            allowed = yield maybeDeferred(self.privileges.checkPrivilege, calendar.path, caldavxml.ReadFreeBusy, "resource")
            if not allowed:
                if config.Scheduling.Options.FreeBusyPrivilegeDenied == "abort":
                    raise HTTPError(ErrorResponse(
                        responsecode.FORBIDDEN,
                        (caldavxml.dav_namespace, "need-privileges"),
                        "No read-free-busy privilege on %s" % (calendar.path,),
                    ))
                log.info("Skipping calendar {path} without read-free-busy", path=calendar.path)
                continue

            paths = yield maybeDeferred(self.tree.queryByTimeRange, calendar.path, timerange.start, timerange.end)
            for path in paths:
                data = yield maybeDeferred(self.tree.readEntry, path)
                objects.append(data)

        fbcalendar = yield maybeDeferred(self.generator.generate, objects, timerange)

        vfreebusy = [c for c in fbcalendar.subcomponents() if c.name() == "VFREEBUSY"][0]
        vfreebusy.replaceProperty(Property("ATTENDEE", href))

        requested = request.mainComponent()
        uid = requested.propertyValue("UID")
        if uid is not None:
            vfreebusy.replaceProperty(Property("UID", str(uid)))
        organizer = requested.getOrganizerProperty()
        if organizer is not None:
            vfreebusy.replaceProperty(organizer.duplicate())

        log.debug("Free busy for {href}: {count} calendar objects", href=href, count=len(objects))
        return FreeBusyResult(href, iTIPRequestStatus.SUCCESS, fbcalendar)
