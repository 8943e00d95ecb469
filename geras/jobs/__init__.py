"""Jobs that measure or refresh the utilization of individual service quotas."""