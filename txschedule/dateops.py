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
Date/time Utilities
"""

__all__ = [
    "Period",
    "normalizeToUTC",
    "compareDateTime",
    "timeRangesOverlap",
    "normalizePeriodList",
    "clipPeriod",
]

from collections import namedtuple
import datetime

import dateutil.tz

Period = namedtuple("Period", ("start", "end",))


def normalizeToUTC(dt, defaulttz=None):
    """
    Normalize a C{datetime.date} or C{datetime.datetime} to a UTC
    C{datetime.datetime}. Dates become midnight and floating values are
    taken to be in C{defaulttz} (UTC when not given).
    """
    if not isinstance(dt, datetime.datetime):
        dt = datetime.datetime(dt.year, dt.month, dt.day)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=defaulttz if defaulttz is not None else dateutil.tz.UTC)
    return dt.astimezone(dateutil.tz.UTC)



def compareDateTime(dt1, dt2, defaulttz=None):
    dt1 = normalizeToUTC(dt1, defaulttz)
    dt2 = normalizeToUTC(dt2, defaulttz)
    if dt1 == dt2:
        return 0
    elif dt1 < dt2:
        return -1
    else:
        return 1



def timeRangesOverlap(start1, end1, start2, end2, defaulttz=None):
    """
    Determine whether the instance (start1, end1) overlaps the time range
    (start2, end2). An instance with no duration overlaps when it starts
    inside the range. Either end of the range may be C{None} for an open
    range.
    """
    start1 = normalizeToUTC(start1, defaulttz)
    end1 = normalizeToUTC(end1, defaulttz) if end1 is not None else start1
    start2 = normalizeToUTC(start2, defaulttz) if start2 is not None else None
    end2 = normalizeToUTC(end2, defaulttz) if end2 is not None else None

    if start1 == end1:
        return (start2 is None or start2 <= start1) and (end2 is None or start1 < end2)
    return (start2 is None or end1 > start2) and (end2 is None or start1 < end2)



def normalizePeriodList(periods):
    """
    Normalize the list of periods by merging overlapping or consecutive ranges
    and sorting the list by each periods start.
    @param periods: a list of L{Period}. The list is changed in place.
    """

    periods[:] = sorted(
        Period(normalizeToUTC(period.start), normalizeToUTC(period.end))
        for period in periods
    )

    # Now merge overlaps and consecutive periods
    merged = []
    for period in periods:
        if merged and merged[-1].end >= period.start:
            if period.end > merged[-1].end:
                merged[-1] = Period(merged[-1].start, period.end)
        else:
            merged.append(period)
    periods[:] = merged



def clipPeriod(period, clipPeriod):
    """
    Clip the start/end period so that it lies entirely within the clip period.
    @param period: the L{Period} to be clipped.
    @param clipPeriod: the L{Period} to clip to.
    @return: the clipped L{Period}, or None if the period is outside the clip
        period
    """
    start = max(normalizeToUTC(period.start), normalizeToUTC(clipPeriod.start))
    end = min(normalizeToUTC(period.end), normalizeToUTC(clipPeriod.end))

    if start >= end:
        return None
    else:
        return Period(start, end)
