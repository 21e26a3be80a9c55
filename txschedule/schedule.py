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
CalDAV scheduling hooks and the schedule outbox resource.

L{CalDAVScheduling} is what a CalDAV server calls when calendar object
resources change or principal properties are requested, and what
L{ScheduleOutboxResource} uses to answer outbox POSTs.
"""

__all__ = [
    "CalDAVScheduling",
    "ScheduleOutboxResource",
]

import posixpath

from twisted.internet.defer import inlineCallbacks, maybeDeferred
from twisted.logger import Logger
from twisted.web import http as responsecode
from twisted.web.resource import Resource
from twisted.web.server import NOT_DONE_YET
from zope.interface import implementer

from txschedule import caldavxml
from txschedule.config import config
from txschedule.http import ErrorResponse, HTTPError
from txschedule.ical import Component, InvalidICalendarDataError
from txschedule.icalendarstore import ISchedulingHooks
from txschedule.scheduling.caldav.delivery import ScheduleViaCalDAV
from txschedule.scheduling.delivery import ScheduleDispatcher
from txschedule.scheduling.freebusy import FreebusyQuery
from txschedule.scheduling.implicit import ImplicitScheduler
from txschedule.scheduling.itip import iTipBroker
from txschedule.scheduling.scheduler import OutboxScheduler
from txschedule.scheduling.utils import scheduleURLsForRecord

log = Logger()


@implementer(ISchedulingHooks)
class CalDAVScheduling(object):
    """
    Implicit scheduling, local delivery and free busy for a calendar tree.
    """

    def __init__(self, directory, tree, privileges, broker=None, generator=None):
        """
        @param directory: the L{IDirectoryService} of calendar users.
        @param tree: the L{ICalendarTree} holding their calendars.
        @param privileges: the L{IPrivilegeChecker} for delivery and free busy.
        @param broker: the L{IScheduleBroker}, an L{iTipBroker} by default.
        @param generator: the L{IFreeBusyGenerator}, a
            L{FreeBusyGenerator} by default.
        """
        self.directory = directory
        self.tree = tree
        self.privileges = privileges
        self.broker = broker if broker is not None else iTipBroker()

        self.dispatcher = ScheduleDispatcher()
        self.implicit = ImplicitScheduler(self.broker, self.dispatcher)
        self.dispatcher.addService(ScheduleViaCalDAV(directory, tree, privileges, self.broker, self.implicit))

        self.freebusy = FreebusyQuery(directory, tree, privileges, generator)
        self.outbox = OutboxScheduler(privileges, self.freebusy)


    @inlineCallbacks
    def addressesForPrincipal(self, owner):
        """
        The calendar user addresses of the principal with UID C{owner}; empty
        when the principal is unknown.
        """
        record = None
        if owner is not None:
            record = yield maybeDeferred(self.directory.recordWithUID, owner)
        if record is None:
            return []
        return list(record.calendarUserAddresses)


    @inlineCallbacks
    def isCalendarObjectPath(self, path):
        """
        Only resources in calendar collections are scheduling object
        resources; inbox items are not.
        """
        parent = yield maybeDeferred(self.tree.getNode, posixpath.dirname(path.rstrip("/")))
        return parent is not None and parent.isCalendar()


    @inlineCallbacks
    def onBeforeCreate(self, path, data, parentPath, owner):
        parent = yield maybeDeferred(self.tree.getNode, parentPath)
        if parent is None or not parent.isCalendar():
            return (data, False)

        calendar = self.parseCalendar(data)
        addresses = yield self.addressesForPrincipal(owner)
        result = yield self.implicit.processChange(None, calendar, addresses)
        return self._changed(data, calendar, result)


    @inlineCallbacks
    def onBeforeUpdate(self, path, data, owner):
        isCalendarObject = yield self.isCalendarObjectPath(path)
        if not isCalendarObject:
            return (data, False)

        oldData = yield maybeDeferred(self.tree.readEntry, path)
        oldCalendar = Component.fromString(oldData)
        calendar = self.parseCalendar(data)
        addresses = yield self.addressesForPrincipal(owner)
        result = yield self.implicit.processChange(oldCalendar, calendar, addresses)
        return self._changed(data, calendar, result)


    @inlineCallbacks
    def onBeforeDelete(self, path, owner):
        isCalendarObject = yield self.isCalendarObjectPath(path)
        if not isCalendarObject:
            return

        oldData = yield maybeDeferred(self.tree.readEntry, path)
        oldCalendar = Component.fromString(oldData)
        addresses = yield self.addressesForPrincipal(owner)
        yield self.implicit.processRemoval(oldCalendar, addresses)


    @inlineCallbacks
    def onPropertyQuery(self, record, names):
        results = {}

        urls = yield scheduleURLsForRecord(record, self.tree)
        for name, url in urls.items():
            if name in names and url:
                results[name] = url

        if caldavxml.CalendarUserAddressSet in names:
            results[caldavxml.CalendarUserAddressSet] = list(record.calendarUserAddresses)
        if caldavxml.CalendarUserType in names:
            results[caldavxml.CalendarUserType] = config.Scheduling.Options.CalendarUserType

        return results


    @inlineCallbacks
    def outboxRequest(self, outboxPath, data, contentType=None):
        """
        Handle a POST to the outbox at C{outboxPath}.

        @return: a L{Deferred} firing with a L{ScheduleResponseQueue}.
        @raise HTTPError: if the request is rejected.
        """
        outbox = yield maybeDeferred(self.tree.getNode, outboxPath)
        if outbox is None:
            raise HTTPError(ErrorResponse(responsecode.NOT_FOUND, None, "No outbox at %s" % (outboxPath,)))

        addresses = yield self.addressesForPrincipal(outbox.owner)
        responses = yield self.outbox.doSchedulingViaPOST(outboxPath, addresses, data, contentType)
        return responses


    def parseCalendar(self, data):
        try:
            return Component.fromString(data)
        except InvalidICalendarDataError as e:
            log.error("Invalid calendar data: {error}", error=e)
            raise HTTPError(ErrorResponse(
                responsecode.BAD_REQUEST,
                (caldavxml.caldav_namespace, "valid-calendar-data"),
                "Invalid calendar data: %s" % (e,),
            ))


    def _changed(self, data, calendar, result):
        """
        @return: C{(data, modified)} where C{data} is the rewritten calendar
            data when scheduling changed it, else the original data.
        """
        newData = str(result)
        if newData == str(calendar):
            return (data, False)
        return (newData, True)



class ScheduleOutboxResource (Resource):
    """
    CalDAV schedule Outbox resource.
    """

    isLeaf = True

    def __init__(self, scheduling, outboxPath):
        """
        @param scheduling: the L{CalDAVScheduling} doing the work.
        @param outboxPath: the path of this outbox in the calendar tree.
        """
        Resource.__init__(self)
        self.scheduling = scheduling
        self.outboxPath = outboxPath


    def render_POST(self, request):
        data = request.content.read()
        contentType = request.getHeader(b"content-type")
        if isinstance(contentType, bytes):
            contentType = contentType.decode("ascii")

        d = self.scheduling.outboxRequest(self.outboxPath, data, contentType)
        d.addCallbacks(
            self._renderResponse, self._renderError,
            callbackArgs=(request,), errbackArgs=(request,),
        )
        return NOT_DONE_YET


    def _renderResponse(self, responses, request):
        request.setResponseCode(responsecode.OK)
        request.setHeader(b"content-type", b"application/xml; charset=utf-8")
        request.write(responses.toxml())
        request.finish()


    def _renderError(self, failure, request):
        if failure.check(HTTPError):
            response = failure.value.response
        else:
            log.failure("Unable to process outbox POST to {path}", failure=failure, path=self.outboxPath)
            response = ErrorResponse(responsecode.INTERNAL_SERVER_ERROR)

        request.setResponseCode(response.code)
        for name, values in response.headers().items():
            request.setHeader(name, values[0])
        request.write(response.toxml())
        request.finish()
