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
iCalendar Recurrence Expansion Utilities
"""

__all__ = [
    "InvalidOverriddenInstanceError",
    "Instance",
    "InstanceList",
]

import datetime

from dateutil.rrule import rrulestr, rruleset
from twisted.logger import Logger

from txschedule.dateops import normalizeToUTC, timeRangesOverlap

log = Logger()


class InvalidOverriddenInstanceError(Exception):

    def __init__(self, rid):
        Exception.__init__(self, rid)
        self.rid = rid



class Instance(object):

    def __init__(self, component, start, end, rid=None, overridden=False):
        self.component = component
        self.start = start
        self.end = end
        self.rid = rid if rid is not None else start
        self.overridden = overridden


    def __repr__(self):
        return "<%s %s: %s - %s>" % (self.__class__.__name__, self.component.propertyValue("UID"), self.start, self.end,)



class InstanceList(object):
    """
    The instances of one or more recurrence sets, keyed by UID and UTC
    start, limited to a time range.
    """

    def __init__(self, ignoreInvalidInstances=True):
        self.instances = {}
        self.ignoreInvalidInstances = ignoreInvalidInstances


    def __iter__(self):
        return iter(sorted(self.instances))


    def __getitem__(self, key):
        return self.instances[key]


    def __len__(self):
        return len(self.instances)


    def values(self):
        return [self.instances[key] for key in self]


    def expandTimeRanges(self, componentSet, limit, lowerLimit=None):
        """
        Expand the set of recurrence instances for the components contained
        within this VCALENDAR component. All components sharing a UID are
        treated as one recurrence set.

        @param componentSet: the list of components to expand.
        @param limit: the end of the range to expand to.
        @param lowerLimit: the start of the range, or C{None}.
        """
        grouped = {}
        for component in componentSet:
            if component.name() == "VTIMEZONE":
                continue
            grouped.setdefault(component.propertyValue("UID"), []).append(component)

        for components in grouped.values():
            master = None
            overrides = []
            for component in components:
                if component.hasProperty("RECURRENCE-ID"):
                    overrides.append(component)
                elif master is None:
                    master = component

            if master is not None:
                self._addMasterComponent(master, overrides, limit, lowerLimit)
            for component in overrides:
                self._addOverrideComponent(component, limit, lowerLimit)


    def _addMasterComponent(self, component, overrides, limit, lowerLimit):
        start, end = component.getEffectiveStartEnd()
        if start is None:
            return
        duration = end - start

        overridden = set([normalizeToUTC(c.propertyValue("RECURRENCE-ID")) for c in overrides])
        exdates = set([normalizeToUTC(dt) for dt in self._dateList(component, "EXDATE")])

        starts = [start]
        if component.hasProperty("RRULE"):
            try:
                starts = self._expandRecurrence(component, start, duration, limit, lowerLimit)
            except (ValueError, TypeError) as e:
                if not self.ignoreInvalidInstances:
                    raise InvalidOverriddenInstanceError(start)
                log.debug(
                    "Ignoring invalid recurrence for {uid}: {error}",
                    uid=component.propertyValue("UID"), error=e,
                )
        starts.extend(self._dateList(component, "RDATE"))

        for instanceStart in starts:
            utcStart = normalizeToUTC(instanceStart)
            if utcStart in exdates or utcStart in overridden:
                continue
            self._addInstance(Instance(component, instanceStart, instanceStart + duration), limit, lowerLimit)


    def _addOverrideComponent(self, component, limit, lowerLimit):
        start, end = component.getEffectiveStartEnd()
        if start is None:
            return
        rid = component.propertyValue("RECURRENCE-ID")
        self._addInstance(Instance(component, start, end, rid=rid, overridden=True), limit, lowerLimit)


    def _addInstance(self, instance, limit, lowerLimit):
        if timeRangesOverlap(instance.start, instance.end, lowerLimit, limit):
            key = (instance.component.propertyValue("UID"), normalizeToUTC(instance.rid),)
            self.instances[key] = instance


    def _expandRecurrence(self, component, start, duration, limit, lowerLimit):
        """
        Expand the RRULEs of a master component up to C{limit}.
        """
        dateOnly = not isinstance(start, datetime.datetime)
        if dateOnly:
            dtstart = datetime.datetime(start.year, start.month, start.day)
        else:
            dtstart = start

        def sameKind(dt):
            dt = normalizeToUTC(dt)
            return dt if dtstart.tzinfo is not None else dt.replace(tzinfo=None)

        rules = rruleset()
        for rrule in component.properties("RRULE"):
            rules.rrule(rrulestr(rrule.strvalue(), dtstart=dtstart))

        before = sameKind(limit)
        after = sameKind(lowerLimit) - duration if lowerLimit is not None else dtstart
        results = rules.between(after, before, inc=True)
        if dateOnly:
            results = [dt.date() for dt in results]
        return results


    def _dateList(self, component, propname):
        """
        Flatten the values of a multi-valued date property (EXDATE, RDATE).
        Periods contribute their start.
        """
        results = []
        values = component._icalendar.get(propname)
        if values is None:
            return results
        if not isinstance(values, list):
            values = [values]
        for value in values:
            for dt in getattr(value, "dts", ()):
                dt = dt.dt
                if isinstance(dt, tuple):
                    dt = dt[0]
                results.append(dt)
        return results
