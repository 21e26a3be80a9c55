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
Implicit scheduling: turn changes to scheduling object resources into iTIP
messages, deliver them and record each recipient's outcome.
"""

from twisted.internet.defer import inlineCallbacks, maybeDeferred
from twisted.logger import Logger

from txschedule.scheduling.utils import normalizeCUAddr

__all__ = [
    "ImplicitScheduler",
]

log = Logger()


class ImplicitScheduler(object):
    """
    Runs the iTIP messages implied by a change through a dispatcher.

    @ivar broker: the L{IScheduleBroker} that works out the messages.
    @ivar dispatcher: the L{ScheduleDispatcher} that delivers them.
    """

    def __init__(self, broker, dispatcher):
        self.broker = broker
        self.dispatcher = dispatcher


    @inlineCallbacks
    def processChange(self, oldCalendar, newCalendar, userAddresses, ignore=()):
        """
        Send the messages implied by a new or changed resource.

        @param oldCalendar: the stored L{Component}, or C{None} for a new
            resource.
        @param newCalendar: the L{Component} about to be stored.
        @param userAddresses: the calendar user addresses of the user making
            the change.
        @param ignore: recipient addresses no message is sent to.
        @return: a L{Deferred} firing with a copy of C{newCalendar} carrying
            a SCHEDULE-STATUS for each recipient.
        """
        calendar = newCalendar.duplicate()
        messages = yield maybeDeferred(self.broker.parseEvent, newCalendar, userAddresses, oldCalendar)

        ignore = set([normalizeCUAddr(address) for address in ignore])
        organizer = calendar.getOrganizer()

        for message in messages:
            if normalizeCUAddr(message.recipient) in ignore:
                log.debug("Not sending {method} to {recipient}", method=message.method, recipient=message.recipient)
                continue

            status = yield self.dispatcher.dispatch(message)

            if organizer is not None and normalizeCUAddr(message.recipient) == normalizeCUAddr(organizer):
                for component in calendar.schedulingComponents():
                    prop = component.getOrganizerProperty()
                    if prop is not None:
                        prop.setParameter("SCHEDULE-STATUS", status)
            elif not calendar.setParameterToValueForPropertyWithValue(
                "SCHEDULE-STATUS", status, "ATTENDEE", message.recipient,
            ):
                log.debug("No attendee {recipient} to record {status} on", recipient=message.recipient, status=status)

        return calendar


    @inlineCallbacks
    def processRemoval(self, oldCalendar, userAddresses):
        """
        Send the messages implied by removing a resource. There is no
        surviving copy to record outcomes on.

        @return: a L{Deferred} firing with the dispatched messages.
        """
        messages = yield maybeDeferred(self.broker.parseEvent, None, userAddresses, oldCalendar)
        for message in messages:
            yield self.dispatcher.dispatch(message)
        return messages
